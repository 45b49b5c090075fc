# Copyright 1999-2019 Alibaba Group Holding Ltd.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


class MirrorException(Exception):
    pass


class ConfigurationError(MirrorException):
    """Invalid configuration or command line combination. Fatal at startup."""
    pass


class RetryFileError(MirrorException):
    """The retry file of a previous run is missing or cannot be read."""
    pass


class SqlExecutionError(MirrorException):
    def __init__(self, sql, returncode, stderr):
        self.sql = sql
        self.returncode = returncode
        self.stderr = stderr
        super().__init__("Execute '%s' failed, returncode: %d, stderr: %s" % (sql,
                                                                              returncode,
                                                                              stderr))
