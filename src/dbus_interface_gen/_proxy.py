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
Client side classes generated from interface descriptions.
"""

# isort: STDLIB
import asyncio
import logging
import types

from ._constants import PROPERTIES_CHANGED, PROPERTIES_INTERFACE, TIME_OUT
from ._declare import from_xml
from ._errors import ArgumentMismatch, InvalidReply, RemoteError
from ._model import InterfaceDescription
from ._signature import encode_variant, marshal, unmarshal, wire_type

logger = logging.getLogger(__name__)

_STRING = wire_type("s")
_VARIANT = wire_type("v")
_PROPERTIES_CHANGED_TYPES = (_STRING, wire_type("a{sv}"), wire_type("as"))

_STOP = object()


class ProxyObject:
    """
    A remote object: a transport, a peer's bus name and an object path.

    Values of const properties read through this object are cached here.
    """

    # pylint: disable=too-few-public-methods

    def __init__(self, transport, destination, path):
        self.transport = transport
        self.destination = destination
        self.path = path
        self.cache = {}

    async def call(self, interface, method, raw_args, timeout=None):
        """
        Call a method on the remote object.

        :returns: the reply
        :rtype: MethodReturn or ErrorReply
        """
        return await self.transport.send_method_call(
            self.destination, self.path, interface, method, raw_args, timeout
        )


def get_object(transport, destination, path):
    """
    Get a proxy object for the object at path.

    :param Transport transport: the connection
    :param str destination: the peer's bus name
    :param str path: the object path
    :rtype: ProxyObject
    """
    return ProxyObject(transport, destination, path)


def _reply_values(reply, out_types):
    """
    Decode a reply.

    :returns: the decoded output values
    :rtype: tuple of object
    :raises RemoteError: for an error reply
    :raises InvalidReply: if the reply does not match out_types
    """
    if reply.is_error:
        raise RemoteError(reply.error_name, reply.message)
    try:
        return unmarshal(reply.body, out_types)
    except ArgumentMismatch as err:
        raise InvalidReply("reply does not match signature %s: %s" % (
            "".join(t.signature for t in out_types), err)) from err


class SignalSubscription:
    """
    An async iterator over the decoded arguments of a signal.

    The receiver is registered by start(), which iterating calls; stop()
    removes only this subscription's receiver and ends the iteration once
    the signals already received are consumed. Iterating a stopped and
    drained subscription, or calling start(), registers it again.
    """

    def __init__(
        self, transport, interface, signal_name, path, wire_types, predicate=None
    ):
        # pylint: disable=too-many-arguments
        self._transport = transport
        self._interface = interface
        self._signal_name = signal_name
        self._path = path
        self._wire_types = tuple(wire_types)
        self._predicate = predicate
        self._queue = None
        self._match = None

    @property
    def active(self):
        """
        Whether a receiver is registered.
        """
        return self._match is not None

    def start(self):
        """
        Register the receiver, if not registered.

        :returns: this subscription
        """
        if self._match is not None:
            return self

        queue = asyncio.Queue()

        def handler(*raw_args):
            try:
                values = unmarshal(raw_args, self._wire_types)
            except ArgumentMismatch as err:
                logger.warning(
                    "Dropped malformed signal %s.%s: %s",
                    self._interface,
                    self._signal_name,
                    err,
                )
                return
            if self._predicate is None or self._predicate(values):
                queue.put_nowait(values)

        self._queue = queue
        self._match = self._transport.add_signal_receiver(
            handler,
            signal_name=self._signal_name,
            dbus_interface=self._interface,
            path=self._path,
        )
        return self

    def stop(self):
        """
        Remove the receiver. Signals already received are still delivered.
        """
        if self._match is None:
            return
        self._match.remove()
        self._match = None
        self._queue.put_nowait(_STOP)

    def __aiter__(self):
        if self._queue is None or self._queue.empty():
            self.start()
        return self

    async def __anext__(self):
        if self._queue is None or (self._match is None and self._queue.empty()):
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _STOP:
            raise StopAsyncIteration
        return item

    async def __aenter__(self):
        return self.start()

    async def __aexit__(self, exc_type, exc_value, traceback):
        self.stop()


def _method_builder(description, spec, timeout):
    """
    Build a single method for the class.

    :param InterfaceDescription description: the interface
    :param MethodSpec spec: the method
    :param timeout: seconds to wait for a reply
    """
    names = [p.name for p in spec.in_args]
    in_types = [p.wire_type for p in spec.in_args]
    out_types = [p.wire_type for p in spec.out_args]

    async def dbus_func(proxy_object, func_args=None):
        """
        Call the method.

        :param ProxyObject proxy_object: the remote object
        :param func_args: arguments by name, or in order
        :type func_args: dict of str * object or sequence of object
        :raises ValueError: if the names do not match the method's arguments
        :raises ArgumentMismatch: if an argument does not match its type
        :raises RemoteError: if the method fails
        :raises InvalidReply: if the reply does not match the method
        """
        if func_args is None:
            func_args = {}
        if isinstance(func_args, dict):
            if frozenset(names) != frozenset(func_args.keys()):
                raise ValueError("Bad keys")
            args = [func_args[name] for name in names]
        else:
            args = list(func_args)

        reply = await proxy_object.call(
            description.name, spec.name, marshal(args, in_types), timeout
        )
        values = _reply_values(reply, out_types)
        if len(values) == 0:
            return None
        if len(values) == 1:
            return values[0]
        return values

    dbus_func.__name__ = spec.name
    dbus_func.__qualname__ = "Methods.%s" % spec.name
    return dbus_func


def _prop_builder(description, spec, timeout):
    """
    Returns a function that builds the class for one property.

    :param InterfaceDescription description: the interface
    :param PropertySpec spec: the property
    :param timeout: seconds to wait for a reply
    """
    key = (description.name, spec.name)

    async def get(proxy_object):
        """
        Read the property.
        """
        if key in proxy_object.cache:
            return proxy_object.cache[key]

        reply = await proxy_object.call(
            PROPERTIES_INTERFACE,
            "Get",
            marshal([description.name, spec.name], [_STRING, _STRING]),
            timeout,
        )
        (variant,) = _reply_values(reply, [_VARIANT])
        if spec.signature == "v":
            value = variant
        else:
            if variant.signature != spec.signature:
                raise InvalidReply(
                    "property %s has signature %s, got %s"
                    % (spec.name, spec.signature, variant.signature)
                )
            try:
                (value,) = unmarshal([variant.value], [spec.wire_type])
            except ArgumentMismatch as err:
                raise InvalidReply(str(err)) from err

        if spec.cacheable:
            proxy_object.cache[key] = value
        return value

    async def set_(proxy_object, value):
        """
        Write the property.
        """
        reply = await proxy_object.call(
            PROPERTIES_INTERFACE,
            "Set",
            marshal(
                [description.name, spec.name, encode_variant(spec.wire_type, value)],
                [_STRING, _STRING, _VARIANT],
            ),
            timeout,
        )
        _reply_values(reply, [])

    def builder(namespace):
        """
        The property class's namespace.

        :param namespace: the class's namespace
        """
        namespace["SIGNATURE"] = spec.signature
        if spec.access.readable:
            namespace["Get"] = staticmethod(get)
        if spec.access.writable:
            namespace["Set"] = staticmethod(set_)

    return builder


def _signal_builder(description, spec):
    """
    Returns a function that builds the class for one signal.
    """
    wire_types = [p.wire_type for p in spec.args]

    def subscribe(proxy_object, predicate=None):
        """
        Subscribe to the signal from proxy_object.

        :param ProxyObject proxy_object: the remote object
        :param predicate: a filter on the decoded arguments, if any
        :rtype: SignalSubscription
        """
        return SignalSubscription(
            proxy_object.transport,
            description.name,
            spec.name,
            proxy_object.path,
            wire_types,
            predicate,
        )

    def builder(namespace):
        namespace["SIGNATURE"] = spec.signature
        namespace["subscribe"] = staticmethod(subscribe)

    return builder


def _iface_builder(description, timeout):
    """
    Returns a function that builds a method interface based on description.

    :param InterfaceDescription description: the interface
    :param timeout: seconds to wait for a reply
    """

    def methods_builder(namespace):
        for spec in description.methods:
            namespace[spec.name] = staticmethod(
                _method_builder(description, spec, timeout)
            )

    def properties_builder(namespace):
        for spec in description.properties:
            namespace[spec.name] = types.new_class(
                spec.name,
                bases=(object,),
                exec_body=_prop_builder(description, spec, timeout),
            )

        def changes(proxy_object):
            """
            Subscribe to PropertiesChanged for this interface.

            :param ProxyObject proxy_object: the remote object
            :rtype: SignalSubscription
            """
            return SignalSubscription(
                proxy_object.transport,
                PROPERTIES_INTERFACE,
                PROPERTIES_CHANGED,
                proxy_object.path,
                _PROPERTIES_CHANGED_TYPES,
                lambda values: values[0] == description.name,
            )

        namespace["changes"] = staticmethod(changes)

    def signals_builder(namespace):
        for spec in description.signals:
            namespace[spec.name] = types.new_class(
                spec.name,
                bases=(object,),
                exec_body=_signal_builder(description, spec),
            )

    def builder(namespace):
        """
        Builds the class.

        :param namespace: the class's namespace
        """
        namespace["INTERFACE_NAME"] = description.name
        namespace["DESCRIPTION"] = description
        namespace["Methods"] = types.new_class(
            "Methods", bases=(object,), exec_body=methods_builder
        )
        namespace["Properties"] = types.new_class(
            "Properties", bases=(object,), exec_body=properties_builder
        )
        namespace["Signals"] = types.new_class(
            "Signals", bases=(object,), exec_body=signals_builder
        )

    return builder


def make_class(name, spec, timeout=TIME_OUT):
    """
    Make a proxy class for an interface.

    :param str name: the name of the class
    :param spec: the interface
    :type spec: InterfaceDescription, Element or str
    :param timeout: seconds to wait for each reply, forever if None
    :type timeout: float or NoneType
    :rtype: type
    :raises InvalidDeclaration: if spec is not a valid interface
    """
    description = spec if isinstance(spec, InterfaceDescription) else from_xml(spec)
    return types.new_class(
        name, bases=(object,), exec_body=_iface_builder(description, timeout)
    )
