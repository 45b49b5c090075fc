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
import os
import subprocess
import traceback

from hms_mirror.config import HiveServer2Config
from hms_mirror.errors import SqlExecutionError

'''
      [log root]
      |______[database name]
             |______[table name]
                    |______stdout.log
                    |______stderr.log
                    |______error.log.[attempt]
'''

DEFAULT_LOG_ROOT = os.path.join(os.path.expanduser("~"), ".hms-mirror", "logs", "sql")

_SEPARATOR = "=============================================================\n"
_SUB_SEPARATOR = "-------------------------------------------------------------\n"


class HiveSQLRunner:
    """Runs HiveQL against one HiveServer2 through the beeline client."""

    def __init__(self,
                 hive_server2: HiveServer2Config,
                 log_root_dir: str = DEFAULT_LOG_ROOT,
                 settings=None,
                 retry=3,
                 logger=None):
        self._hive_server2 = hive_server2
        self._log_root_dir = log_root_dir
        self._settings = ["set %s;" % s.rstrip(";") for s in settings or []]
        self._retry = retry
        self._logger = logger or logging.getLogger("hive sql runner")

    def _get_command(self, sql: str) -> list:
        cmd = [self._hive_server2.beeline, "-u", self._hive_server2.uri]
        props = self._hive_server2.connection_properties
        if props.get("user"):
            cmd += ["-n", props["user"]]
        if props.get("password"):
            cmd += ["-p", props["password"]]
        cmd += ["--silent=true", "--showHeader=false", "--outputformat=tsv2"]
        cmd += ["-e", " ".join(self._settings + [sql.rstrip().rstrip(";") + ";"])]
        return cmd

    def _get_log_dir(self, database: str, table: str) -> str:
        log_dir = os.path.join(self._log_root_dir, database or "N_A", table or "N_A")
        os.makedirs(log_dir, exist_ok=True)
        return log_dir

    def execute(self, sql: str, database: str = None, table: str = None) -> list:
        """Executes one statement and returns its non empty result lines.

        Raises SqlExecutionError once every attempt failed.
        """
        log_dir = self._get_log_dir(database, table)
        cmd = self._get_command(sql)
        self._logger.info("[%s.%s] execute '%s'" % (database, table, sql))

        returncode, stdout, stderr = -1, "", ""
        for attempt in range(self._retry):
            try:
                sp = subprocess.Popen(cmd,
                                      stdout=subprocess.PIPE,
                                      stderr=subprocess.PIPE,
                                      encoding='utf-8')
                stdout, stderr = sp.communicate()
                returncode = sp.returncode
            except OSError:
                with open(os.path.join(log_dir, "error.log." + str(attempt)), 'a') as fd:
                    fd.write("error:\n")
                    fd.write(traceback.format_exc())
                stderr = traceback.format_exc()
                continue

            if returncode == 0:
                self._write_log(os.path.join(log_dir, "stdout.log"), sql, stdout)
                self._write_log(os.path.join(log_dir, "stderr.log"), sql, stderr)
                return [line for line in stdout.split("\n") if len(line.strip()) > 0]

            with open(os.path.join(log_dir, "error.log." + str(attempt)), 'a') as fd:
                fd.write(_SEPARATOR)
                fd.write("sql:\n")
                fd.write(sql + "\n")
                fd.write(_SUB_SEPARATOR)
                fd.write("stdout:\n")
                fd.write(stdout + "\n")
                fd.write(_SUB_SEPARATOR)
                fd.write("stderr:\n")
                fd.write(stderr + "\n")
                fd.write(_SEPARATOR)

        self._logger.error("execute '%s' failed %d times" % (sql, self._retry))
        raise SqlExecutionError(sql, returncode, stderr)

    @staticmethod
    def _write_log(path, sql, content):
        with open(path, 'a') as fd:
            fd.write(_SEPARATOR)
            fd.write("sql:\n")
            fd.write(sql + "\n")
            fd.write(_SUB_SEPARATOR)
            fd.write((content or "") + "\n")
            fd.write(_SEPARATOR)
