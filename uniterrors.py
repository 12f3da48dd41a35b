# Copyright (c) 2025, Spaghetti Software Inc
#
# MIT License
#
# Permission is hereby granted, free of charge, to any person obtaining a copy of this software and 
# associated documentation files (the "Software"), to deal in the Software without restriction, 
# including without limitation the rights to use, copy, modify, merge, publish, distribute, 
# sublicense, and/or sell copies of the Software, and to permit persons to whom the Software is 
# furnished to do so, subject to the following conditions:
# The above copyright notice and this permission notice shall be included in all copies or 
# substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR IMPLIED, INCLUDING 
# BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND 
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, 
# DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, 
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.
#
# Exception types shared by the unit registry, the expression engine and
# the command-line front end.
#

##############################################
# ERROR TYPES
##############################################

class UnitsError(Exception):
    """Base class for every error reported by siunits."""


class ParseError(UnitsError, ValueError):
    """Malformed expression or term."""


class UnitNotFoundError(UnitsError, LookupError):
    def __init__(self, name):
        super().__init__(f"Unit '{name}' not found")
        self.name = name


class AlreadyDefinedError(UnitsError):
    def __init__(self, name):
        super().__init__(f"Unit '{name}' already defined")
        self.name = name


class InUseError(UnitsError):
    """Raised when removing a base unit or a unit other definitions use."""


class CycleDetectedError(UnitsError):
    def __init__(self, chain):
        self.chain = list(chain)
        super().__init__(
            "Cyclic unit definition: " + " -> ".join(f"'{n}'" for n in self.chain)
        )


class RegistryIOError(UnitsError):
    def __init__(self, path, reason):
        super().__init__(f"Cannot access unit file '{path}': {reason}")
        self.path = path
