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

from hms_mirror.config import Config
from hms_mirror.model.db_mirror import DBMirror
from hms_mirror.model.enums import Environment, MetadataStrategy
from hms_mirror.model.table_mirror import TableMirror
from hms_mirror.stage.stage_task import StageTask


class Metadata(StageTask):
    stage_name = "METADATA"

    def __init__(self, config: Config, db_mirror: DBMirror, tbl_mirror: TableMirror,
                 clusters: dict, cancel_event=None, logger=None):
        super().__init__(config, db_mirror, tbl_mirror, cancel_event, logger)
        self._lower = clusters[Environment.LOWER]
        self._upper = clusters[Environment.UPPER]

    def dispatch(self) -> bool:
        self.prepare_upper_definition(self._upper)
        strategy = self._config.metadata.strategy
        if strategy == MetadataStrategy.DIRECT:
            return self._direct()
        elif strategy == MetadataStrategy.TRANSITION:
            return self._transition()
        raise ValueError("Unsupported metadata strategy: %s" % strategy)

    def _direct(self) -> bool:
        return self._upper.build_upper_schema_using_lower_data(self._config,
                                                               self._db_mirror,
                                                               self._tbl_mirror)

    def _transition(self) -> bool:
        transfer_db = self._config.transfer_prefix + self._db_mirror.name
        if not self._lower.build_transfer_table_schema(self._config, transfer_db,
                                                       self._db_mirror, self._tbl_mirror):
            return False
        if not self._lower.export_schema(self._config, transfer_db,
                                         self._db_mirror, self._tbl_mirror):
            return False
        return self._upper.import_transfer_schema_using_lower_data(self._config,
                                                                   self._db_mirror,
                                                                   self._tbl_mirror)
