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


from enum import Enum


class LogLevel(int, Enum):
    QUIET = 0
    INFO = 1
    DEBUG = 2


# Use %s/%d/etc formatting ala logging so the message is only built when it will be shown.
class Loggable:
    def __init__(self, verbose: LogLevel = LogLevel.QUIET):
        self.verbose = verbose

    @staticmethod
    def _emit(prefix: str, args) -> None:
        print(prefix + (str(args[0]) % tuple(args[1:])))

    def info(self, *args):
        if self.verbose >= LogLevel.INFO:
            self._emit("INFO: ", args)

    def debug(self, *args):
        if self.verbose >= LogLevel.DEBUG:
            self._emit("DEBUG: ", args)

    def warn(self, *args):
        """Warnings are shown at every verbosity level."""
        self._emit("WARN: ", args)
