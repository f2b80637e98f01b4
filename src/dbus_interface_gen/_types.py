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
Semantic types for values whose D-Bus type is not implied by the Python
type alone.

Each class carries its D-Bus type code in SIGNATURE. Instances are plain
ints, floats or strs; the classes are used mostly in annotations.
"""

# isort: STDLIB
from collections import namedtuple


class Byte(int):
    """
    Unsigned 8 bit integer.
    """

    SIGNATURE = "y"


class Int16(int):
    """
    Signed 16 bit integer.
    """

    SIGNATURE = "n"


class UInt16(int):
    """
    Unsigned 16 bit integer.
    """

    SIGNATURE = "q"


class Int32(int):
    """
    Signed 32 bit integer.
    """

    SIGNATURE = "i"


class UInt32(int):
    """
    Unsigned 32 bit integer.
    """

    SIGNATURE = "u"


class Int64(int):
    """
    Signed 64 bit integer.
    """

    SIGNATURE = "x"


class UInt64(int):
    """
    Unsigned 64 bit integer.
    """

    SIGNATURE = "t"


class Double(float):
    """
    IEEE 754 double.
    """

    SIGNATURE = "d"


class UnixFd(int):
    """
    A file descriptor passed with the message.

    Received descriptors are duplicates owned by the receiver: they refer to
    the file that was sent, not to the same number, and are compared by
    os.path.sameopenfile rather than by value.
    """

    SIGNATURE = "h"


class ObjectPath(str):
    """
    A D-Bus object path.
    """

    SIGNATURE = "o"


class Signature(str):
    """
    A D-Bus type signature.
    """

    SIGNATURE = "g"


class Variant(namedtuple("Variant", ["signature", "value"])):
    """
    A value together with the signature it is to be sent as.
    """

    # pylint: disable=too-few-public-methods

    __slots__ = ()

    SIGNATURE = "v"


MARKER_TYPES = (
    Byte,
    Int16,
    UInt16,
    Int32,
    UInt32,
    Int64,
    UInt64,
    Double,
    UnixFd,
    ObjectPath,
    Signature,
)
