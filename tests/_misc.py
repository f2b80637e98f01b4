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
Miscellaneous classes and methods to support testing.
"""

# isort: STDLIB
import asyncio
import enum
from typing import Dict, List, Tuple

# isort: FIRSTPARTY
from dbus_interface_gen import (
    Access,
    EmitsChanged,
    HandlerFailure,
    LoopbackTransport,
    ObjectServer,
    dbus_property,
    interface,
    method,
    register_type,
    signal,
)

CALC_INTERFACE = "org.example.Calc"
CALC_PATH = "/org/example/Calc"
BUS_NAME = "org.example"
PALETTE_INTERFACE = "org.example.Palette"
PALETTE_PATH = "/org/example/Palette"


class DivisionByZero(HandlerFailure):
    """
    Declared failure of Calc.Divide.
    """

    ERROR_NAME = "org.example.Calc.Error.DivisionByZero"


@interface(CALC_INTERFACE)
class Calc:
    """
    A small interface with one of everything.
    """

    def __init__(self):
        self.calls = []
        self._count = 0
        self._label = "calc"
        self._secret = None

    @method(out_args="sum")
    def add(self, a: int, b: int) -> int:
        self.calls.append(("Add", a, b))
        return a + b

    @method(out_args=("quotient", "remainder"), errors=(DivisionByZero,))
    def divide(self, a: int, b: int) -> Tuple[int, int]:
        self.calls.append(("Divide", a, b))
        if b == 0:
            raise DivisionByZero("division by zero")
        return divmod(a, b)

    @method()
    def refuse(self):
        raise DivisionByZero("not declared here")

    @method()
    def explode(self):
        raise RuntimeError("boom")

    @method(out_args="total")
    def bad_return(self) -> int:
        return "not an int"

    @method(out_args="value")
    async def slow_echo(self, value: str, delay: float) -> str:
        await asyncio.sleep(delay)
        self.calls.append(("SlowEcho", value))
        return value

    @method(out_args="tally")
    def tally(self, words: List[str]) -> Dict[str, int]:
        result = {}
        for word in words:
            result[word] = result.get(word, 0) + 1
        return result

    @dbus_property()
    def count(self) -> int:
        return self._count

    @count.setter
    def count(self, value: int):
        if value < 0:
            raise ValueError("count may not be negative")
        self._count = value

    @dbus_property(emits_changed=EmitsChanged.INVALIDATES)
    def label(self) -> str:
        return self._label

    @label.setter
    def label(self, value: str):
        self._label = value

    @dbus_property(emits_changed=EmitsChanged.CONST)
    def version(self) -> str:
        self.calls.append(("Version",))
        return "1.0"

    @dbus_property(access=Access.WRITE, emits_changed=EmitsChanged.FALSE)
    def secret(self, value: str):
        self._secret = value

    @signal()
    def overflowed(self, value: int, message: str):
        """
        Emitted when a result does not fit.
        """


class Shade(enum.Enum):
    """
    An application type sent as its name.
    """

    RED = 1
    GREEN = 2
    BLUE = 3


# BLUE has no wire name, encoding it fails with KeyError
_SHADE_NAMES = {Shade.RED: "RED", Shade.GREEN: "GREEN"}


def register_shade():
    """
    Register Shade; decoding an unknown name fails with KeyError.
    """
    register_type(
        Shade, "s", lambda shade: _SHADE_NAMES[shade], lambda name: Shade[name]
    )


def palette_class():
    """
    Declare an interface that uses Shade, which must be registered.

    :rtype: type
    """

    @interface(PALETTE_INTERFACE)
    class Palette:
        """
        Methods and a property whose values go through Shade's strategy.
        """

        def __init__(self):
            self.calls = []
            self.current = Shade.RED

        @method(out_args="mixed")
        def mix(self, shade: Shade) -> Shade:
            self.calls.append(("Mix", shade))
            return shade

        @method(out_args="shade")
        def darkest(self) -> Shade:
            return Shade.BLUE

        @dbus_property()
        def shade(self) -> Shade:
            return self.current

    return Palette


class Service:
    """
    An object server serving a Calc over a loopback transport.
    """

    def __init__(self):
        self.transport = None
        self.server = None
        self.calc = None
        self._task = None

    async def setUp(self):
        """
        Start serving.
        """
        self.transport = LoopbackTransport()
        self.server = ObjectServer(self.transport)
        self.calc = Calc()
        self.server.at(CALC_PATH, self.calc)
        self._task = asyncio.ensure_future(self.server.serve())

    async def tearDown(self):
        """
        Stop serving.
        """
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
