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
Raw replies, signal payloads and dispatch requests exchanged with the
transport.
"""

# isort: STDLIB
from collections import namedtuple


class MethodReturn(namedtuple("MethodReturn", ["body"])):
    """
    A successful reply; body is a tuple of dbus-python values.
    """

    # pylint: disable=too-few-public-methods

    __slots__ = ()

    is_error = False


class ErrorReply(namedtuple("ErrorReply", ["error_name", "message"])):
    """
    An error reply.
    """

    __slots__ = ()

    is_error = True

    @classmethod
    def from_exception(cls, exc):
        """
        Build an error reply from a DBusError.

        :param DBusError exc: the error
        :rtype: ErrorReply
        """
        return cls(exc.error_name, exc.message)


class SignalPayload(
    namedtuple("SignalPayload", ["interface", "member", "signature", "body"])
):
    """
    A marshalled signal, ready to be broadcast.
    """

    # pylint: disable=too-few-public-methods

    __slots__ = ()


class DispatchRequest(
    namedtuple(
        "DispatchRequest", ["member", "body", "reply", "path", "interface"]
    )
):
    """
    An incoming method call.

    reply is a callable that takes the MethodReturn or ErrorReply. path and
    interface may be None when the transport serves a single interface.
    """

    # pylint: disable=too-few-public-methods

    __slots__ = ()

    def __new__(cls, member, body, reply, path=None, interface=None):
        # pylint: disable=too-many-arguments
        return super().__new__(cls, member, tuple(body), reply, path, interface)
