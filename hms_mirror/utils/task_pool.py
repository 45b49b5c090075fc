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
import threading

from concurrent.futures import ThreadPoolExecutor, Future, wait, ALL_COMPLETED


class TaskPool:
    """Bounded, single use pool of worker threads for one stage.

    At most `capability` submitted callables run at the same time. join_all
    blocks until every submitted callable has finished, whatever its outcome.
    """

    def __init__(self, capability: int, name: str, logger=None):
        if capability < 1:
            raise ValueError("capability must be at least 1, got %d" % capability)
        self._name = name
        self._logger = logger or logging.getLogger("task pool")
        self._executor = ThreadPoolExecutor(max_workers=capability, thread_name_prefix=name)
        self._futures = []
        self._lock = threading.Lock()
        self._stopped = False

    def submit(self, fn, *args, **kwargs) -> Future:
        with self._lock:
            if self._stopped:
                raise RuntimeError("Task pool %s has been shut down" % self._name)
            future = self._executor.submit(fn, *args, **kwargs)
            self._futures.append(future)
        return future

    def join_all(self) -> list:
        with self._lock:
            futures = list(self._futures)
        done, _ = wait(futures, return_when=ALL_COMPLETED)
        self._logger.debug("%s: %d tasks finished" % (self._name, len(done)))
        return futures

    def shutdown(self):
        with self._lock:
            self._stopped = True
        self._executor.shutdown(wait=True)
