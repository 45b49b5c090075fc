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

import logging
import shutil

from hms_mirror.config import HiveServer2Config
from hms_mirror.errors import ConfigurationError
from hms_mirror.hive_sql_runner import HiveSQLRunner, DEFAULT_LOG_ROOT
from hms_mirror.model.enums import Environment


class ConnectionPools:
    """Hands out the SQL runner of each cluster side."""

    def __init__(self, log_root_dir=DEFAULT_LOG_ROOT, logger=None):
        self._log_root_dir = log_root_dir
        self._logger = logger or logging.getLogger("connection pools")
        self._hive_server2s = {}
        self._runners = {}

    def add_hive_server2(self, environment: Environment, hive_server2: HiveServer2Config):
        self._hive_server2s[environment] = hive_server2

    def init(self):
        for environment, hive_server2 in self._hive_server2s.items():
            if hive_server2.uri is None:
                raise ConfigurationError("No hiveServer2 uri configured for the %s cluster"
                                         % environment.value)
            if shutil.which(hive_server2.beeline) is None:
                self._logger.warning("%s client '%s' was not found on the PATH"
                                     % (environment.value, hive_server2.beeline))
            self._runners[environment] = HiveSQLRunner(hive_server2,
                                                       self._log_root_dir,
                                                       logger=self._logger)

    def set_runner(self, environment: Environment, runner):
        self._runners[environment] = runner

    def get_runner(self, environment: Environment):
        if environment not in self._runners:
            raise ConfigurationError("No connection initialized for the %s cluster"
                                     % environment.value)
        return self._runners[environment]

    def close(self):
        self._runners.clear()
