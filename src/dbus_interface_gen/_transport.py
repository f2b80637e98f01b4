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
The contract the generated code expects of a message transport, and an
in-process implementation of it.
"""

# isort: STDLIB
import abc
import asyncio
import logging

from ._message import DispatchRequest

logger = logging.getLogger(__name__)


class SignalMatch:
    """
    A registered signal receiver.

    None for signal_name, dbus_interface or path matches anything.
    """

    def __init__(self, transport, handler, signal_name, dbus_interface, path):
        # pylint: disable=too-many-arguments
        self._transport = transport
        self.handler = handler
        self.signal_name = signal_name
        self.dbus_interface = dbus_interface
        self.path = path

    def matches(self, path, interface, signal_name):
        """
        Whether a signal is for this receiver.

        :rtype: bool
        """
        return all(
            expected is None or expected == actual
            for (expected, actual) in (
                (self.path, path),
                (self.dbus_interface, interface),
                (self.signal_name, signal_name),
            )
        )

    def remove(self):
        """
        Stop receiving signals. Other receivers are unaffected.
        """
        self._transport.remove_signal_receiver(self)


class Transport(abc.ABC):
    """
    A connection to a message bus.
    """

    @abc.abstractmethod
    async def send_method_call(
        self, destination, path, interface, method, raw_args, timeout=None
    ):
        """
        Send a method call and wait for the reply.

        :param str destination: the bus name of the peer
        :param str path: the object path
        :param str interface: the interface name
        :param str method: the member name
        :param raw_args: dbus-python values
        :type raw_args: sequence of object
        :param timeout: seconds to wait, forever if None
        :type timeout: float or NoneType
        :returns: the reply
        :rtype: MethodReturn or ErrorReply
        """
        # pylint: disable=too-many-arguments
        raise NotImplementedError()

    @abc.abstractmethod
    def receive_dispatch_request(self):
        """
        Incoming method calls.

        :returns: an async iterator of DispatchRequest
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def emit_signal(self, path, interface, signal_name, raw_args):
        """
        Broadcast a signal.

        :param str path: the emitting object's path
        :param str interface: the interface name
        :param str signal_name: the member name
        :param raw_args: dbus-python values
        :type raw_args: sequence of object
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def add_signal_receiver(
        self, handler, signal_name=None, dbus_interface=None, path=None
    ):
        """
        Call handler with the arguments of each matching signal.

        :returns: the registration
        :rtype: SignalMatch
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def remove_signal_receiver(self, match):
        """
        Undo add_signal_receiver.

        :param SignalMatch match: the registration
        """
        raise NotImplementedError()


class LoopbackTransport(Transport):
    """
    Connects proxies to an object server in the same process.

    Calls are queued for whoever consumes receive_dispatch_request(), usually
    ObjectServer.serve(); signals go straight to registered receivers.
    """

    def __init__(self):
        self._requests = None
        self._receivers = []

    def _queue(self):
        if self._requests is None:
            self._requests = asyncio.Queue()
        return self._requests

    async def send_method_call(
        self, destination, path, interface, method, raw_args, timeout=None
    ):
        # pylint: disable=too-many-arguments
        future = asyncio.get_running_loop().create_future()

        def reply(result):
            if not future.done():
                future.set_result(result)

        await self._queue().put(
            DispatchRequest(method, raw_args, reply, path, interface)
        )
        return await asyncio.wait_for(future, timeout)

    async def receive_dispatch_request(self):
        while True:
            yield await self._queue().get()

    def emit_signal(self, path, interface, signal_name, raw_args):
        for match in list(self._receivers):
            if not match.matches(path, interface, signal_name):
                continue
            try:
                match.handler(*raw_args)
            except Exception:  # pylint: disable=broad-except
                logger.exception(
                    "Signal receiver for %s.%s failed", interface, signal_name
                )

    def add_signal_receiver(
        self, handler, signal_name=None, dbus_interface=None, path=None
    ):
        match = SignalMatch(self, handler, signal_name, dbus_interface, path)
        self._receivers.append(match)
        return match

    def remove_signal_receiver(self, match):
        if match in self._receivers:
            self._receivers.remove(match)
