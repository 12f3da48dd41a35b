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
# The unit registry: a name-keyed table of unit definitions. A unit whose
# formula equals its own name is a base unit; the seven SI base units are
# seeded when a registry is created. Derived units are persisted to a flat
# file, one "name=formula" per line.
#

import logging
import os
import stat
import tempfile
import threading
from dataclasses import dataclass

from uniterrors import AlreadyDefinedError, RegistryIOError, UnitNotFoundError

logger = logging.getLogger(__name__)

##############################################
# 1. UNITS
##############################################

# s=time, m=length, kg=mass, A=current, K=temperature,
# mol=amount of substance, cd=luminous intensity
SI_BASE_UNITS = ("s", "m", "kg", "A", "K", "mol", "cd")


@dataclass(frozen=True)
class Unit:
    name: str
    formula: str

    @property
    def is_base_unit(self):
        return self.formula == self.name

    def __str__(self):
        return self.name

def _file_mode(path):
    """Mode of the existing file at `path`, else 0666 minus the umask."""
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask

##############################################
# 2. REGISTRY
##############################################

class UnitRegistry:
    """
    Table of known units keyed by name.

    The registry does not look inside formulas: checking that a formula
    parses, that its units exist, or that a unit may be removed is the
    caller's job (see unitexpr and siunits).
    """
    def __init__(self, base_units=SI_BASE_UNITS):
        self._units = {}
        self._lock = threading.RLock()
        for name in base_units:
            try:
                self.add(name, name)
            except AlreadyDefinedError as e:
                raise AssertionError(f"duplicate base unit '{name}'") from e

    def get(self, name) -> Unit:
        with self._lock:
            try:
                return self._units[name]
            except KeyError:
                raise UnitNotFoundError(name) from None

    def add(self, name, formula) -> Unit:
        with self._lock:
            if name in self._units:
                raise AlreadyDefinedError(name)
            unit = Unit(name, formula)
            self._units[name] = unit
            return unit

    def remove(self, name):
        with self._lock:
            if name not in self._units:
                raise UnitNotFoundError(name)
            del self._units[name]

    def names(self):
        with self._lock:
            return sorted(self._units)

    def derived_units(self):
        return [unit for unit in self if not unit.is_base_unit]

    def __contains__(self, name):
        with self._lock:
            return name in self._units

    def __len__(self):
        with self._lock:
            return len(self._units)

    def __iter__(self):
        with self._lock:
            units = [self._units[name] for name in sorted(self._units)]
        return iter(units)

    ##############################################
    # 3. PERSISTENCE
    ##############################################

    def load(self, path):
        """
        Add every "name=formula" line of `path` to the registry.

        A missing file means there is nothing to load. Lines without '='
        are skipped; a definition that collides with a known unit aborts
        the load with AlreadyDefinedError.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                lines = f.read().splitlines()
        except FileNotFoundError:
            logger.debug("No unit file at %s", path)
            return 0
        except OSError as e:
            raise RegistryIOError(path, e.strerror or e) from e

        count = 0
        for line in lines:
            if "=" not in line:
                continue
            name, formula = line.split("=", 1)
            self.add(name.strip(), formula.strip())
            count += 1
        logger.debug("Loaded %d unit definition(s) from %s", count, path)
        return count

    def store(self, path):
        """
        Write every derived unit to `path`. Base units are rebuilt on
        startup and never written. The file is replaced atomically.
        """
        units = self.derived_units()
        directory = os.path.dirname(os.path.abspath(path))
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".units-", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    for unit in units:
                        f.write(f"{unit.name}={unit.formula}\n")
                os.chmod(tmp_path, _file_mode(path))
                os.replace(tmp_path, path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except OSError as e:
            raise RegistryIOError(path, e.strerror or e) from e
        logger.debug("Stored %d unit definition(s) to %s", len(units), path)
