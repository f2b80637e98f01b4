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
An object server: a tree of object paths, each serving the interfaces of
one object plus the standard D-Bus interfaces.
"""

# isort: STDLIB
import asyncio
import logging

from ._constants import (
    INTROSPECTABLE_INTERFACE,
    OBJECT_MANAGER_INTERFACE,
    PROPERTIES_INTERFACE,
    STANDARD_INTERFACES,
)
from ._data import SPECS
from ._declare import from_xml, interfaces_of
from ._errors import (
    DBusError,
    InterfaceNotFound,
    InvalidDeclaration,
    UnexpectedFailure,
    UnknownInterface,
    UnknownMember,
    UnknownObject,
)
from ._introspect import node_document
from ._message import ErrorReply, MethodReturn
from ._router import MethodRouter
from ._signature import is_valid_object_path, marshal, unmarshal

logger = logging.getLogger(__name__)

_MACHINE_ID_FILES = ("/etc/machine-id", "/var/lib/dbus/machine-id")

_STANDARD = dict((name, from_xml(xml)) for (name, xml) in SPECS.items())


def _machine_id():
    for filename in _MACHINE_ID_FILES:
        try:
            with open(filename, encoding="ascii") as machine_id:
                return machine_id.read().strip()
        except OSError:
            continue
    raise UnexpectedFailure("no machine id available")


def _is_below(path, ancestor):
    """
    Whether path is a strict descendant of ancestor.
    """
    if ancestor == "/":
        return path != "/"
    return path.startswith(ancestor + "/")


class ObjectServer:
    """
    Serves objects at object paths.

    Every registered path, and every path on the way to one, also answers
    org.freedesktop.DBus.Peer, Introspectable, Properties and
    ObjectManager.
    """

    def __init__(self, transport=None):
        """
        Initializer.

        :param transport: where signals go and requests come from, if any
        :type transport: Transport or NoneType
        """
        self._transport = transport
        self._objects = {}

    def at(self, path, obj):
        """
        Serve the interfaces declared on obj's class at path.

        :param str path: the object path
        :param object obj: an instance of one or more @interface classes
        :returns: False if every interface was already at path
        :rtype: bool
        :raises ValueError: if path is not a valid object path
        :raises InvalidDeclaration: if obj declares no interface
        """
        if not is_valid_object_path(path):
            raise ValueError("invalid object path %r" % path)

        descriptions = interfaces_of(obj)
        if descriptions == []:
            raise InvalidDeclaration("%r declares no D-Bus interface" % obj)

        routers = self._objects.setdefault(path, {})
        added = False
        for description in descriptions:
            if description.name in routers:
                logger.warning(
                    "Interface %s is already served at %s", description.name, path
                )
                continue
            routers[description.name] = MethodRouter(
                description,
                obj,
                lambda payload, path=path: self._emit(path, payload),
            )
            added = True
            logger.info("Serving %s at %s", description.name, path)

        if routers == {}:
            del self._objects[path]
        return added

    def remove(self, path, interface_name):
        """
        Stop serving one interface at path.

        :param str path: the object path
        :param str interface_name: the interface name
        :returns: True if path serves nothing afterwards
        :rtype: bool
        :raises InterfaceNotFound:
        """
        router = self.interface(path, interface_name)
        router.close()
        routers = self._objects[path]
        del routers[interface_name]
        logger.info("Removed %s from %s", interface_name, path)
        if routers == {}:
            del self._objects[path]
            return True
        return False

    def interface(self, path, name):
        """
        Get the router serving an interface.

        :param str path: the object path
        :param str name: the interface name
        :rtype: MethodRouter
        :raises InterfaceNotFound:
        """
        router = self._objects.get(path, {}).get(name)
        if router is None:
            raise InterfaceNotFound(path, name)
        return router

    def _exists(self, path):
        return path in self._objects or any(
            _is_below(p, path) for p in self._objects
        )

    def _children(self, path):
        prefix = "/" if path == "/" else path + "/"
        return sorted(
            frozenset(
                p[len(prefix) :].split("/")[0]
                for p in self._objects
                if _is_below(p, path)
            )
        )

    def introspect(self, path):
        """
        The introspection document for path.

        :param str path: the object path
        :rtype: str
        :raises UnknownObject: if nothing is served at or below path
        """
        if not self._exists(path):
            raise UnknownObject("no object at %s" % path)
        interfaces = [_STANDARD[name] for name in STANDARD_INTERFACES] + [
            _STANDARD[OBJECT_MANAGER_INTERFACE]
        ]
        interfaces.extend(r.description for r in self._objects.get(path, {}).values())
        return node_document(interfaces, self._children(path))

    async def get_managed_objects(self, path):
        """
        The interfaces and properties of every object below path.

        :param str path: the object path
        :returns: map from object path to interface name to properties
        :rtype: dict of str * (dict of str * (dict of str * Variant))
        """
        result = {}
        for (object_path, routers) in sorted(self._objects.items()):
            if not _is_below(object_path, path):
                continue
            result[object_path] = {}
            for (name, router) in routers.items():
                result[object_path][name] = await router.property_values()
        return result

    def _router(self, path, interface_name):
        router = self._objects.get(path, {}).get(interface_name)
        if router is None:
            raise UnknownInterface(
                "object %s has no interface %s" % (path, interface_name)
            )
        return router

    async def _properties(self, path, member, args):
        if member == "Get":
            (interface_name, name) = args
            return await self._router(path, interface_name).get_property(
                name, variant=True
            )
        if member == "Set":
            (interface_name, name, value) = args
            return await self._router(path, interface_name).set_property(
                name, value
            )
        (interface_name,) = args
        return await self._router(path, interface_name).get_all_properties()

    async def _standard_call(self, path, interface_name, member, raw_args):
        spec = _STANDARD[interface_name].method(member)
        if spec is None:
            raise UnknownMember(
                "interface %s has no method %s" % (interface_name, member)
            )
        args = unmarshal(raw_args, [p.wire_type for p in spec.in_args])
        out_types = [p.wire_type for p in spec.out_args]

        if interface_name == PROPERTIES_INTERFACE:
            return await self._properties(path, member, args)
        if interface_name == INTROSPECTABLE_INTERFACE:
            return MethodReturn(marshal([self.introspect(path)], out_types))
        if interface_name == OBJECT_MANAGER_INTERFACE:
            return MethodReturn(
                marshal([await self.get_managed_objects(path)], out_types)
            )
        if member == "GetMachineId":
            return MethodReturn(marshal([_machine_id()], out_types))
        return MethodReturn(())

    async def dispatch(self, path, interface_name, member, raw_args):
        """
        Dispatch a method call to the object at path.

        :param str path: the object path
        :param interface_name: the interface, any that has member if None
        :type interface_name: str or NoneType
        :param str member: the method name
        :param raw_args: the arguments as received
        :type raw_args: sequence of object
        :returns: the reply
        :rtype: MethodReturn or ErrorReply
        """
        try:
            if not self._exists(path):
                raise UnknownObject("no object at %s" % path)

            routers = self._objects.get(path, {})
            if interface_name is None:
                interface_name = next(
                    (
                        name
                        for (name, router) in routers.items()
                        if router.description.method(member) is not None
                    ),
                    next(
                        (
                            name
                            for (name, description) in _STANDARD.items()
                            if description.method(member) is not None
                        ),
                        None,
                    ),
                )
                if interface_name is None:
                    raise UnknownMember("object %s has no method %s" % (path, member))

            if interface_name in _STANDARD:
                return await self._standard_call(
                    path, interface_name, member, raw_args
                )
            return await self._router(path, interface_name).handle(member, raw_args)
        except DBusError as err:
            logger.warning(
                "Call to %s %s.%s failed: %s", path, interface_name, member, err
            )
            return ErrorReply.from_exception(err)
        except Exception as err:  # pylint: disable=broad-except
            logger.exception("Unexpected failure in %s %s.%s", path, interface_name, member)
            return ErrorReply.from_exception(UnexpectedFailure(str(err)))

    def _emit(self, path, payload):
        if self._transport is None:
            logger.debug(
                "No transport, dropping %s.%s from %s",
                payload.interface,
                payload.member,
                path,
            )
            return
        self._transport.emit_signal(
            path, payload.interface, payload.member, payload.body
        )

    async def _serve_one(self, request):
        reply = await self.dispatch(
            request.path or "/", request.interface, request.member, request.body
        )
        try:
            result = request.reply(reply)
            if asyncio.iscoroutine(result):
                await result
        except Exception:  # pylint: disable=broad-except
            logger.exception("Could not deliver reply to %s", request.member)

    async def serve(self):
        """
        Serve requests from the transport until cancelled or the stream
        of requests ends.

        :raises ValueError: if there is no transport
        """
        if self._transport is None:
            raise ValueError("an object server needs a transport to serve")

        tasks = set()
        async for request in self._transport.receive_dispatch_request():
            task = asyncio.ensure_future(self._serve_one(request))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
        if tasks:
            await asyncio.gather(*tasks)
