# Copyright 2016 Red Hat, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Top-level classes and methods.
"""

from ._constants import TIME_OUT
from ._declare import (
    DbusProperty,
    DbusSignal,
    build_interface,
    dbus_property,
    from_xml,
    interface,
    interfaces_of,
    member_name,
    method,
    signal,
)
from ._errors import (
    AccessDenied,
    ArgumentMismatch,
    DBusError,
    DbusInterfaceGenError,
    HandlerFailure,
    InterfaceNotFound,
    InvalidDeclaration,
    InvalidReply,
    PropertyReadOnly,
    RemoteError,
    UnexpectedFailure,
    UnknownInterface,
    UnknownMember,
    UnknownObject,
    UnknownProperty,
    UnsupportedType,
)
from ._implementation import make_dbus_python_class, managed_object_class, mo_query
from ._introspect import introspection_document, introspection_element, node_document
from ._message import DispatchRequest, ErrorReply, MethodReturn, SignalPayload
from ._model import (
    Access,
    Direction,
    EmitsChanged,
    ExecutionMode,
    InterfaceDescription,
    MethodSpec,
    ParamSpec,
    PropertySpec,
    SignalSpec,
    build_description,
)
from ._proxy import ProxyObject, SignalSubscription, get_object, make_class
from ._router import MethodRouter
from ._server import ObjectServer
from ._signature import (
    WireType,
    conforms,
    is_valid_object_path,
    is_valid_signature,
    marshal,
    register_type,
    signature,
    split_signature,
    to_python,
    unmarshal,
    unregister_type,
    wire_type,
)
from ._transport import LoopbackTransport, SignalMatch, Transport
from ._types import (
    Byte,
    Double,
    Int16,
    Int32,
    Int64,
    ObjectPath,
    Signature,
    UInt16,
    UInt32,
    UInt64,
    UnixFd,
    Variant,
)
from ._version import __version__, __version_info__
