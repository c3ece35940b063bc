# Qualflow - information-flow qualifier inference
# Copyright (C) 2021 GrammaTech, Inc.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
#
# This project is sponsored by the Office of Naval Research, One Liberty
# Center, 875 N. Randolph Street, Arlington, VA 22203 under contract #
# N68335-17-C-0700.  The content of the information does not necessarily
# reflect the position or policy of the Government and no official
# endorsement should be inferred.


'''Static types of program values. The solver only needs to tell null, array, class and primitive
types apart, so this is deliberately a thin model of the analysed program's type system.
'''

from abc import ABC
from typing import Any


class ValueType(ABC):
    def __eq__(self, other: Any) -> bool:
        return type(self) is type(other) and str(self) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))

    def __repr__(self) -> str:
        return str(self)


class NullType(ValueType):
    '''The type of the null literal. Values of this type can never be written through, so they
    are always treated as read-only.
    '''
    def __str__(self) -> str:
        return 'null_type'


class PrimitiveType(ValueType):
    def __init__(self, name: str) -> None:
        self.name = name

    def __str__(self) -> str:
        return self.name


class ClassType(ValueType):
    def __init__(self, name: str) -> None:
        self.name = name

    def __str__(self) -> str:
        return self.name


class ArrayType(ValueType):
    def __init__(self, member_type: ValueType, dimensions: int = 1) -> None:
        self.member_type = member_type
        self.dimensions = dimensions

    def __str__(self) -> str:
        return f'{self.member_type}{"[]" * self.dimensions}'
