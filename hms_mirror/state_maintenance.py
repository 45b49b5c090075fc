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

import hashlib
import logging
import os
import threading
import time
import traceback

import yaml

from hms_mirror.errors import ConfigurationError, RetryFileError
from hms_mirror.model.conversion import Conversion

'''
  Retry file layout (YAML):

  dateMarker: 2021-02-18_10-31-05
  configFile: /home/user/.hms-mirror/cfg/default.yaml
  conversion:
    start: 1613660000.0
    config: {...}
    databases: {...}
'''

DEFAULT_RETRY_DIR = os.path.join(os.path.expanduser("~"), ".hms-mirror", "retry")
DEFAULT_INTERVAL_MS = 5000


def retry_key(config_file: str) -> str:
    canonical = os.path.realpath(os.path.abspath(config_file))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


class StateMaintenance:
    """Snapshots the Conversion to a retry file on a timer.

    Snapshots are taken while tasks keep mutating their tables, so a saved
    table may still be STARTED; the next run schedules it again.
    """

    def __init__(self,
                 interval_ms: int = DEFAULT_INTERVAL_MS,
                 config_file: str = None,
                 date_marker: str = None,
                 retry_dir: str = DEFAULT_RETRY_DIR,
                 logger=None):
        self._interval = interval_ms / 1000.0
        self._config_file = config_file
        self._date_marker = date_marker or time.strftime("%Y-%m-%d_%H-%M-%S")
        self._retry_dir = retry_dir
        self._logger = logger or logging.getLogger("state maintenance")
        self._conversion = None
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread = None

    @property
    def date_marker(self):
        return self._date_marker

    def set_conversion(self, conversion: Conversion):
        self._conversion = conversion

    def get_retry_file(self) -> str:
        return os.path.join(self._retry_dir, "%s.retry.yaml" % retry_key(self._config_file))

    def start(self):
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="state-maintenance", daemon=True)
        self._thread.start()
        self._logger.info("saving state to %s every %.1fs" % (self.get_retry_file(),
                                                              self._interval))

    def stop(self):
        if self._thread is not None:
            self._stop_event.set()
            self._thread.join()
            self._thread = None
        self._safe_save()

    def _run(self):
        while not self._stop_event.wait(self._interval):
            self._safe_save()

    def _safe_save(self):
        try:
            self.save_state()
        except Exception:
            # a missed snapshot only narrows what a retry can resume
            self._logger.error("saving state failed:\n%s" % traceback.format_exc())

    def save_state(self):
        if self._conversion is None:
            return
        retry_file = self.get_retry_file()
        with self._lock:
            content = {
                "dateMarker": self._date_marker,
                "configFile": self._config_file,
                "conversion": self._conversion.to_dict(),
            }
            os.makedirs(self._retry_dir, exist_ok=True)
            tmp_file = retry_file + ".tmp"
            with open(tmp_file, "w", encoding="utf-8") as fd:
                yaml.safe_dump(content, fd, sort_keys=False, default_flow_style=False)
            os.replace(tmp_file, retry_file)
        self._logger.debug("state saved to %s" % retry_file)

    def delete_state(self):
        retry_file = self.get_retry_file()
        with self._lock:
            if os.path.exists(retry_file):
                os.remove(retry_file)
                self._logger.info("removed retry file %s" % retry_file)

    def load_state(self) -> Conversion:
        retry_file = self.get_retry_file()
        if not os.path.exists(retry_file):
            raise RetryFileError("Retry file %s not found for config %s"
                                 % (retry_file, self._config_file))
        try:
            with open(retry_file, "r", encoding="utf-8") as fd:
                content = yaml.safe_load(fd)
            conversion = Conversion.from_dict(content["conversion"])
        except (OSError, yaml.YAMLError, ConfigurationError, KeyError, TypeError, ValueError) as e:
            raise RetryFileError("Couldn't read retry file %s: %s" % (retry_file, e))
        self._date_marker = content.get("dateMarker", self._date_marker)
        self._conversion = conversion
        self._logger.info("loaded state from %s (%s)" % (retry_file, self._date_marker))
        return conversion
