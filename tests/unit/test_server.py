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
Test the object server.
"""

# isort: STDLIB
import asyncio
import unittest
import xml.etree.ElementTree as ET
from unittest import mock

# isort: FIRSTPARTY
from dbus_interface_gen import (
    InterfaceNotFound,
    InvalidDeclaration,
    LoopbackTransport,
    MethodRouter,
    ObjectServer,
    Variant,
    unregister_type,
)
from dbus_interface_gen._constants import (
    ERROR_ACCESS_DENIED,
    ERROR_FAILED,
    ERROR_INVALID_ARGS,
    ERROR_PROPERTY_READ_ONLY,
    ERROR_UNKNOWN_INTERFACE,
    ERROR_UNKNOWN_METHOD,
    ERROR_UNKNOWN_OBJECT,
    ERROR_UNKNOWN_PROPERTY,
    INTROSPECTABLE_INTERFACE,
    OBJECT_MANAGER_INTERFACE,
    PEER_INTERFACE,
    PROPERTIES_INTERFACE,
)

from .._misc import (
    BUS_NAME,
    CALC_INTERFACE,
    CALC_PATH,
    PALETTE_INTERFACE,
    PALETTE_PATH,
    Calc,
    Shade,
    palette_class,
    register_shade,
)


class RegistrationTestCase(unittest.TestCase):
    """
    Test adding and removing objects.
    """

    def testAt(self):
        """
        Test registering an object.
        """
        server = ObjectServer()
        calc = Calc()
        self.assertTrue(server.at(CALC_PATH, calc))
        self.assertFalse(server.at(CALC_PATH, calc))
        self.assertEqual(
            server.interface(CALC_PATH, CALC_INTERFACE).description,
            Calc.__dbus_interface__,
        )

    def testAtInvalid(self):
        """
        Test registering at a bad path, and an object with no interface.
        """
        server = ObjectServer()
        with self.assertRaises(ValueError):
            server.at("not/a/path", Calc())
        with self.assertRaises(InvalidDeclaration):
            server.at(CALC_PATH, object())

    def testRemove(self):
        """
        Test removing an interface.
        """
        server = ObjectServer()
        calc = Calc()
        server.at(CALC_PATH, calc)
        self.assertTrue(server.remove(CALC_PATH, CALC_INTERFACE))
        with self.assertRaises(InterfaceNotFound):
            server.interface(CALC_PATH, CALC_INTERFACE)
        with self.assertRaises(InterfaceNotFound):
            server.remove(CALC_PATH, CALC_INTERFACE)
        self.assertEqual(calc.overflowed(1, "x"), [])


class DispatchTestCase(unittest.IsolatedAsyncioTestCase):
    """
    Test dispatching calls to served objects.
    """

    def setUp(self):
        self._server = ObjectServer()
        self._calc = Calc()
        self._server.at(CALC_PATH, self._calc)

    async def testCall(self):
        """
        Test calls with and without an interface name.
        """
        reply = await self._server.dispatch(CALC_PATH, CALC_INTERFACE, "Add", [2, 3])
        self.assertEqual(reply.body, (5,))
        reply = await self._server.dispatch(CALC_PATH, None, "Add", [2, 3])
        self.assertEqual(reply.body, (5,))
        reply = await self._server.dispatch(CALC_PATH, None, "Ping", [])
        self.assertEqual(reply.body, ())

    async def testUnknown(self):
        """
        Test unknown objects, interfaces and members.
        """
        reply = await self._server.dispatch("/nowhere", CALC_INTERFACE, "Add", [2, 3])
        self.assertEqual(reply.error_name, ERROR_UNKNOWN_OBJECT)

        reply = await self._server.dispatch(CALC_PATH, "org.example.Nope", "Add", [])
        self.assertEqual(reply.error_name, ERROR_UNKNOWN_INTERFACE)

        reply = await self._server.dispatch(CALC_PATH, None, "Multiply", [])
        self.assertEqual(reply.error_name, ERROR_UNKNOWN_METHOD)

        reply = await self._server.dispatch(CALC_PATH, PEER_INTERFACE, "Pong", [])
        self.assertEqual(reply.error_name, ERROR_UNKNOWN_METHOD)

        self.assertEqual(self._calc.calls, [])

    async def testProperties(self):
        """
        Test org.freedesktop.DBus.Properties.
        """
        reply = await self._server.dispatch(
            CALC_PATH, PROPERTIES_INTERFACE, "Get", [CALC_INTERFACE, "Count"]
        )
        self.assertEqual(reply.body, (0,))
        self.assertEqual(reply.body[0].variant_level, 1)

        reply = await self._server.dispatch(
            CALC_PATH,
            PROPERTIES_INTERFACE,
            "Set",
            [CALC_INTERFACE, "Count", Variant("i", 7)],
        )
        self.assertFalse(reply.is_error)
        self.assertEqual(self._calc.count, 7)

        reply = await self._server.dispatch(
            CALC_PATH, PROPERTIES_INTERFACE, "GetAll", [CALC_INTERFACE]
        )
        self.assertEqual(
            reply.body, ({"Count": 7, "Label": "calc", "Version": "1.0"},)
        )

    async def testPropertyErrors(self):
        """
        Test failures of org.freedesktop.DBus.Properties calls.
        """
        cases = [
            ("Get", [CALC_INTERFACE, "Secret"], ERROR_ACCESS_DENIED),
            ("Get", [CALC_INTERFACE, "Missing"], ERROR_UNKNOWN_PROPERTY),
            ("Get", ["org.example.Nope", "Count"], ERROR_UNKNOWN_INTERFACE),
            (
                "Set",
                [CALC_INTERFACE, "Version", Variant("s", "2.0")],
                ERROR_PROPERTY_READ_ONLY,
            ),
            ("Set", [CALC_INTERFACE, "Count", Variant("s", "x")], ERROR_INVALID_ARGS),
            ("Get", [CALC_INTERFACE], ERROR_INVALID_ARGS),
        ]
        for (member, args, error_name) in cases:
            reply = await self._server.dispatch(
                CALC_PATH, PROPERTIES_INTERFACE, member, args
            )
            self.assertEqual(reply.error_name, error_name)

    async def testIntrospect(self):
        """
        Test org.freedesktop.DBus.Introspectable at an object and above it.
        """
        reply = await self._server.dispatch(
            CALC_PATH, INTROSPECTABLE_INTERFACE, "Introspect", []
        )
        root = ET.fromstring(reply.body[0])
        names = [i.attrib["name"] for i in root.findall("./interface")]
        self.assertIn(CALC_INTERFACE, names)
        self.assertIn(PROPERTIES_INTERFACE, names)
        self.assertEqual(root.findall("./node"), [])

        reply = await self._server.dispatch("/", INTROSPECTABLE_INTERFACE, "Introspect", [])
        root = ET.fromstring(reply.body[0])
        self.assertNotIn(
            CALC_INTERFACE, [i.attrib["name"] for i in root.findall("./interface")]
        )
        self.assertEqual([n.attrib["name"] for n in root.findall("./node")], ["org"])

        reply = await self._server.dispatch(
            "/org/example", INTROSPECTABLE_INTERFACE, "Introspect", []
        )
        root = ET.fromstring(reply.body[0])
        self.assertEqual([n.attrib["name"] for n in root.findall("./node")], ["Calc"])

    async def testManagedObjects(self):
        """
        Test org.freedesktop.DBus.ObjectManager.
        """
        reply = await self._server.dispatch(
            "/", OBJECT_MANAGER_INTERFACE, "GetManagedObjects", []
        )
        (objects,) = reply.body
        self.assertEqual(list(objects.keys()), [CALC_PATH])
        self.assertEqual(
            objects[CALC_PATH][CALC_INTERFACE],
            {"Count": 0, "Label": "calc", "Version": "1.0"},
        )

        reply = await self._server.dispatch(
            CALC_PATH, OBJECT_MANAGER_INTERFACE, "GetManagedObjects", []
        )
        self.assertEqual(reply.body, ({},))


class SignalTestCase(unittest.IsolatedAsyncioTestCase):
    """
    Test that signals of served objects reach the transport.
    """

    async def testSignal(self):
        """
        Test a declared signal and a property change.
        """
        transport = LoopbackTransport()
        server = ObjectServer(transport)
        calc = Calc()
        server.at(CALC_PATH, calc)

        received = []
        transport.add_signal_receiver(
            lambda *args: received.append(args), path=CALC_PATH
        )

        calc.overflowed(1, "x")
        await server.dispatch(
            CALC_PATH,
            PROPERTIES_INTERFACE,
            "Set",
            [CALC_INTERFACE, "Count", Variant("i", 3)],
        )

        self.assertEqual(received, [(1, "x"), (CALC_INTERFACE, {"Count": 3}, [])])

    async def testNoTransport(self):
        """
        Test that signals are dropped without a transport.
        """
        server = ObjectServer()
        calc = Calc()
        server.at(CALC_PATH, calc)
        self.assertEqual(len(calc.overflowed(1, "x")), 1)
        with self.assertRaises(ValueError):
            await server.serve()


class FailureTestCase(unittest.IsolatedAsyncioTestCase):
    """
    Test that every failure while serving a call is answered.
    """

    async def asyncSetUp(self):
        register_shade()
        self.addCleanup(unregister_type, Shade)
        self._transport = LoopbackTransport()
        self._server = ObjectServer(self._transport)
        self._palette = palette_class()()
        self._server.at(PALETTE_PATH, self._palette)
        self._task = asyncio.ensure_future(self._server.serve())

    async def asyncTearDown(self):
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def testStrategyFailures(self):
        """
        Test that failing decoders and encoders are answered with errors.
        """
        reply = await self._transport.send_method_call(
            BUS_NAME, PALETTE_PATH, PALETTE_INTERFACE, "Mix", ["PURPLE"], timeout=1
        )
        self.assertEqual(reply.error_name, ERROR_INVALID_ARGS)
        self.assertEqual(self._palette.calls, [])

        reply = await self._transport.send_method_call(
            BUS_NAME, PALETTE_PATH, PALETTE_INTERFACE, "Darkest", [], timeout=1
        )
        self.assertEqual(reply.error_name, ERROR_FAILED)

        self._palette.current = Shade.BLUE
        reply = await self._transport.send_method_call(
            BUS_NAME,
            PALETTE_PATH,
            PROPERTIES_INTERFACE,
            "Get",
            [PALETTE_INTERFACE, "Shade"],
            timeout=1,
        )
        self.assertEqual(reply.error_name, ERROR_FAILED)

    async def testUnexpectedFailure(self):
        """
        Test that an exception escaping a router is answered with Failed.
        """
        with mock.patch.object(MethodRouter, "handle", side_effect=KeyError("lost")):
            with self.assertLogs("dbus_interface_gen._server", level="ERROR"):
                reply = await self._transport.send_method_call(
                    BUS_NAME,
                    PALETTE_PATH,
                    PALETTE_INTERFACE,
                    "Mix",
                    ["RED"],
                    timeout=1,
                )
        self.assertEqual(reply.error_name, ERROR_FAILED)
        self.assertEqual(self._palette.calls, [])
