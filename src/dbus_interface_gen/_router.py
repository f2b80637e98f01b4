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
Server side dispatch of method calls, property access and signals for one
interface of one object.
"""

# isort: STDLIB
import asyncio
import inspect
import logging
from types import MappingProxyType

from ._constants import PROPERTIES_CHANGED, PROPERTIES_INTERFACE
from ._declare import DbusProperty
from ._errors import (
    AccessDenied,
    ArgumentMismatch,
    DBusError,
    InvalidDeclaration,
    PropertyReadOnly,
    UnexpectedFailure,
    UnknownMember,
    UnknownProperty,
)
from ._message import ErrorReply, MethodReturn, SignalPayload
from ._model import EmitsChanged
from ._signature import (
    encode_variant,
    marshal,
    unmarshal,
    unwrap_variant,
    wire_type,
)
from ._types import Variant

logger = logging.getLogger(__name__)

_VARIANT = wire_type("v")
_PROPERTIES = wire_type("a{sv}")
_PROPERTIES_CHANGED_TYPES = (wire_type("s"), _PROPERTIES, wire_type("as"))


async def _resolve(result):
    if inspect.isawaitable(result):
        return await result
    return result


def _encode_property(spec, value):
    try:
        return encode_variant(spec.wire_type, value)
    except ArgumentMismatch as err:
        raise ArgumentMismatch("property %s: %s" % (spec.name, err)) from err


class MethodRouter:
    """
    Routes incoming calls for one interface onto an implementation.

    The method table is built once and never changes; all per-call state
    is local to the call, so concurrent calls need no locking here.
    """

    def __init__(self, description, implementation, signal_sink=None):
        """
        Initializer.

        :param InterfaceDescription description: the interface
        :param object implementation: the object implementing it
        :param signal_sink: called with each SignalPayload emitted, if any
        :raises InvalidDeclaration: if a method has no handler
        """
        self.description = description
        self._implementation = implementation
        self._signal_sink = signal_sink

        methods = {}
        for spec in description.methods:
            handler = getattr(implementation, spec.attribute or spec.name, None)
            if not callable(handler):
                raise InvalidDeclaration(
                    "%r has no handler for method %s.%s"
                    % (implementation, description.name, spec.name)
                )
            methods[spec.name] = (
                spec,
                handler,
                tuple(p.wire_type for p in spec.in_args),
                tuple(p.wire_type for p in spec.out_args),
            )
        self._methods = MappingProxyType(methods)
        self._properties = MappingProxyType(
            dict((spec.name, spec) for spec in description.properties)
        )

        routers = getattr(implementation, "__dict__", None)
        if routers is not None:
            routers.setdefault("_dbus_routers", []).append(self)

    def close(self):
        """
        Detach from the implementation; its signals no longer go here.
        """
        routers = getattr(self._implementation, "__dict__", {}).get(
            "_dbus_routers", []
        )
        if self in routers:
            routers.remove(self)

    async def handle(self, method_name, raw_args):
        """
        Dispatch one method call.

        Never raises for a failure of the call itself; every failure
        becomes an error reply.

        :param str method_name: the member name
        :param raw_args: the arguments as received
        :type raw_args: sequence of object
        :returns: the reply
        :rtype: MethodReturn or ErrorReply
        """
        entry = self._methods.get(method_name)
        if entry is None:
            logger.warning(
                "Unknown method %s called on %s", method_name, self.description.name
            )
            return ErrorReply.from_exception(
                UnknownMember(
                    "interface %s has no method %s"
                    % (self.description.name, method_name)
                )
            )

        (spec, handler, in_types, out_types) = entry
        try:
            args = unmarshal(raw_args, in_types)
        except ArgumentMismatch as err:
            logger.warning(
                "Rejected call to %s.%s: %s", self.description.name, method_name, err
            )
            return ErrorReply.from_exception(err)

        logger.debug("Dispatching %s.%s", self.description.name, method_name)
        try:
            result = await _resolve(handler(*args))
        except DBusError as err:
            if spec.fallible and (spec.errors == () or isinstance(err, spec.errors)):
                logger.debug(
                    "%s.%s failed: %s", self.description.name, method_name, err
                )
                return ErrorReply.from_exception(err)
            logger.error(
                "Undeclared failure in %s.%s",
                self.description.name,
                method_name,
                exc_info=True,
            )
            return ErrorReply.from_exception(UnexpectedFailure(err.message))
        except Exception as err:  # pylint: disable=broad-except
            logger.exception(
                "Unexpected failure in %s.%s", self.description.name, method_name
            )
            return ErrorReply.from_exception(UnexpectedFailure(str(err)))

        if len(out_types) == 0:
            values = ()
        elif len(out_types) == 1:
            values = (result,)
        else:
            values = result if isinstance(result, (tuple, list)) else (result,)

        try:
            return MethodReturn(marshal(values, out_types))
        except ArgumentMismatch as err:
            logger.error(
                "%s.%s returned a value not matching %s: %s",
                self.description.name,
                method_name,
                spec.out_signature,
                err,
            )
            return ErrorReply.from_exception(
                UnexpectedFailure("invalid return value: %s" % err)
            )

    def _property_spec(self, name):
        spec = self._properties.get(name)
        if spec is None:
            raise UnknownProperty(
                "interface %s has no property %s" % (self.description.name, name)
            )
        return spec

    async def _read(self, spec):
        attribute = spec.attribute or spec.name
        static = inspect.getattr_static(self._implementation, attribute, None)
        if isinstance(static, DbusProperty):
            return await _resolve(static.fget(self._implementation))
        return await _resolve(getattr(self._implementation, attribute))

    async def _write(self, spec, value):
        attribute = spec.attribute or spec.name
        static = inspect.getattr_static(self._implementation, attribute, None)
        if isinstance(static, DbusProperty):
            await _resolve(static.fset(self._implementation, value))
        else:
            setattr(self._implementation, attribute, value)

    async def get_property(self, name, variant=False):
        """
        Read a property.

        :param str name: the property name
        :param bool variant: whether to return the value as a variant
        :returns: a reply whose body holds the value
        :rtype: MethodReturn or ErrorReply
        """
        try:
            spec = self._property_spec(name)
            if not spec.access.readable:
                raise AccessDenied("property %s is write-only" % name)
        except DBusError as err:
            logger.warning("Rejected read of %s.%s: %s", self.description.name, name, err)
            return ErrorReply.from_exception(err)

        try:
            value = await self._read(spec)
        except DBusError as err:
            return ErrorReply.from_exception(err)
        except Exception as err:  # pylint: disable=broad-except
            logger.exception("Failed to read %s.%s", self.description.name, name)
            return ErrorReply.from_exception(UnexpectedFailure(str(err)))

        try:
            if variant:
                return MethodReturn(marshal([_encode_property(spec, value)], [_VARIANT]))
            return MethodReturn(marshal([value], [spec.wire_type]))
        except ArgumentMismatch as err:
            logger.error("Property %s.%s has an invalid value: %s", self.description.name, name, err)
            return ErrorReply.from_exception(
                UnexpectedFailure("invalid property value: %s" % err)
            )

    async def property_values(self):
        """
        Read all readable properties; values that fail to read are skipped.

        :returns: map from property name to encoded value
        :rtype: dict of str * Variant
        """
        values = {}
        for spec in self.description.properties:
            if not spec.access.readable:
                continue
            try:
                values[spec.name] = _encode_property(spec, await self._read(spec))
            except Exception as err:  # pylint: disable=broad-except
                logger.warning(
                    "GetAll skipped %s.%s: %s", self.description.name, spec.name, err
                )
        return values

    async def get_all_properties(self):
        """
        Read all readable properties.

        :returns: a reply whose body is a single a{sv} value
        :rtype: MethodReturn
        """
        return MethodReturn(marshal([await self.property_values()], [_PROPERTIES]))

    async def set_property(self, name, value):
        """
        Set a property and send its change notification.

        Nothing is emitted if the set is rejected or fails.

        :param str name: the property name
        :param object value: the new value, plain, dbus-python or variant
        :returns: an empty reply, or an error reply
        :rtype: MethodReturn or ErrorReply
        """
        try:
            spec = self._property_spec(name)
            if not spec.access.writable:
                raise PropertyReadOnly("property %s is read-only" % name)
            if spec.signature != "v" and (
                getattr(value, "variant_level", 0) > 0 or isinstance(value, Variant)
            ):
                (sig, value) = unwrap_variant(value)
                if sig != spec.signature:
                    raise ArgumentMismatch(
                        "property %s has signature %s, not %s"
                        % (name, spec.signature, sig)
                    )
            (new_value,) = unmarshal([value], [spec.wire_type])
        except DBusError as err:
            logger.warning("Rejected write of %s.%s: %s", self.description.name, name, err)
            return ErrorReply.from_exception(err)

        try:
            await self._write(spec, new_value)
        except DBusError as err:
            return ErrorReply.from_exception(err)
        except Exception as err:  # pylint: disable=broad-except
            logger.exception("Failed to write %s.%s", self.description.name, name)
            return ErrorReply.from_exception(UnexpectedFailure(str(err)))

        await self._properties_changed(spec, new_value)
        return MethodReturn(())

    async def _properties_changed(self, spec, value):
        if spec.emits_changed is EmitsChanged.TRUE:
            if spec.access.readable:
                try:
                    value = await self._read(spec)
                except Exception as err:  # pylint: disable=broad-except
                    logger.warning(
                        "Could not re-read %s.%s after set, sending the set value: %s",
                        self.description.name,
                        spec.name,
                        err,
                    )
            try:
                changed = {spec.name: _encode_property(spec, value)}
            except ArgumentMismatch as err:
                logger.error(
                    "No change notification for %s.%s: %s",
                    self.description.name,
                    spec.name,
                    err,
                )
                return None
            invalidated = []
        elif spec.emits_changed is EmitsChanged.INVALIDATES:
            changed = {}
            invalidated = [spec.name]
        else:
            return None

        payload = SignalPayload(
            PROPERTIES_INTERFACE,
            PROPERTIES_CHANGED,
            "sa{sv}as",
            marshal(
                [self.description.name, changed, invalidated],
                _PROPERTIES_CHANGED_TYPES,
            ),
        )
        self._send(payload)
        return payload

    async def property_changed(self, name):
        """
        Announce a change made to a property outside of a D-Bus set.

        :param str name: the property name
        :returns: the payload emitted, None if the policy emits nothing
        :rtype: SignalPayload or NoneType
        :raises UnknownProperty:
        """
        spec = self._property_spec(name)
        value = await self._read(spec) if spec.access.readable else None
        return await self._properties_changed(spec, value)

    def emit(self, signal_name, args):
        """
        Marshal a signal and pass it to the signal sink.

        :param str signal_name: the signal's member name
        :param args: the signal's arguments
        :type args: sequence of object
        :returns: the marshalled signal
        :rtype: SignalPayload
        :raises UnknownMember: if the interface has no such signal
        :raises ArgumentMismatch: if args do not match the signal
        """
        spec = self.description.signal(signal_name)
        if spec is None:
            raise UnknownMember(
                "interface %s has no signal %s" % (self.description.name, signal_name)
            )
        payload = SignalPayload(
            self.description.name,
            spec.name,
            spec.signature,
            marshal(args, [p.wire_type for p in spec.args]),
        )
        self._send(payload)
        return payload

    def _send(self, payload):
        logger.debug("Emitting %s.%s", payload.interface, payload.member)
        if self._signal_sink is not None:
            self._signal_sink(payload)

    async def _serve_one(self, request):
        reply = await self.handle(request.member, request.body)
        try:
            await _resolve(request.reply(reply))
        except Exception:  # pylint: disable=broad-except
            logger.exception("Could not deliver reply to %s", request.member)

    async def serve(self, requests):
        """
        Serve a stream of dispatch requests until it ends.

        Each request runs in its own task, so a suspended handler does not
        hold up later requests.

        :param requests: async iterable of DispatchRequest
        """
        tasks = set()
        async for request in requests:
            task = asyncio.ensure_future(self._serve_one(request))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
        if tasks:
            await asyncio.gather(*tasks)
