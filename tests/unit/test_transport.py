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
Test the loopback transport.
"""

# isort: STDLIB
import asyncio
import unittest

# isort: FIRSTPARTY
from dbus_interface_gen import LoopbackTransport, MethodReturn, Transport


class LoopbackTestCase(unittest.IsolatedAsyncioTestCase):
    """
    Test calls and signals over a loopback transport.
    """

    def testAbstract(self):
        """
        Test that the transport contract can not be instantiated.
        """
        with self.assertRaises(TypeError):
            Transport()  # pylint: disable=abstract-class-instantiated

    async def testCall(self):
        """
        Test that a call is delivered as a dispatch request and answered.
        """
        transport = LoopbackTransport()

        async def answer():
            async for request in transport.receive_dispatch_request():
                self.assertEqual(request.path, "/a")
                self.assertEqual(request.interface, "org.example.I")
                self.assertEqual(request.member, "M")
                self.assertEqual(request.body, (1,))
                request.reply(MethodReturn((2,)))
                break

        task = asyncio.ensure_future(answer())
        reply = await transport.send_method_call(
            "org.example", "/a", "org.example.I", "M", [1], timeout=1
        )
        await task
        self.assertEqual(reply, MethodReturn((2,)))

    async def testTimeout(self):
        """
        Test that an unanswered call times out.
        """
        transport = LoopbackTransport()
        with self.assertRaises(asyncio.TimeoutError):
            await transport.send_method_call(
                "org.example", "/a", "org.example.I", "M", [], timeout=0.05
            )

    def testSignals(self):
        """
        Test matching, removal and failing receivers.
        """
        transport = LoopbackTransport()
        everything = []
        only_b = []

        def broken(*_args):
            raise RuntimeError("receiver failed")

        transport.add_signal_receiver(lambda *args: everything.append(args))
        match = transport.add_signal_receiver(
            lambda *args: only_b.append(args), signal_name="B", path="/a"
        )
        transport.add_signal_receiver(broken)

        with self.assertLogs("dbus_interface_gen._transport", level="ERROR"):
            transport.emit_signal("/a", "org.example.I", "A", (1,))
            transport.emit_signal("/a", "org.example.I", "B", (2,))
            transport.emit_signal("/b", "org.example.I", "B", (3,))
        self.assertEqual(everything, [(1,), (2,), (3,)])
        self.assertEqual(only_b, [(2,)])

        match.remove()
        with self.assertLogs("dbus_interface_gen._transport", level="ERROR"):
            transport.emit_signal("/a", "org.example.I", "B", (4,))
        self.assertEqual(only_b, [(2,)])
        self.assertEqual(len(everything), 4)
