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
import re


class BaseFeature:
    """A detector and in-place corrector for one class of DDL that can't be replayed.

    Features are stateless, they only look at and rewrite the definition lines
    they are given.
    """

    name = "BaseFeature"
    description = ""

    def __init__(self, logger=None):
        self._logger = logger or logging.getLogger("feature")

    def applicable(self, schema: list) -> bool:
        raise NotImplementedError()

    def fix_schema(self, schema: list) -> bool:
        raise NotImplementedError()

    @staticmethod
    def contains(marker: str, schema: list) -> bool:
        return BaseFeature.index_of(schema, marker) >= 0

    @staticmethod
    def index_of(schema: list, marker: str) -> int:
        for i, line in enumerate(schema):
            if line is not None and line.strip().upper().startswith(marker):
                return i
        return -1

    @staticmethod
    def get_group_for(pattern, schema: list):
        if isinstance(pattern, str):
            pattern = re.compile(pattern)
        for line in schema:
            if line is None:
                continue
            # keep control characters, a raw form feed is a valid delimiter
            m = pattern.search(line.strip(" \t\r\n"))
            if m is not None:
                return m.group(1)
        return None

    @staticmethod
    def remove_range(start: int, end: int, schema: list):
        """Removes schema[start:end], end exclusive."""
        del schema[start:end]
