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
from hms_mirror.model.table_mirror import TableMirror
from hms_mirror.stage.stage_task import StageTask


class Storage(StageTask):
    stage_name = "STORAGE"

    def __init__(self, config: Config, db_mirror: DBMirror, tbl_mirror: TableMirror,
                 data_transfer, cancel_event=None, logger=None):
        super().__init__(config, db_mirror, tbl_mirror, cancel_event, logger)
        self._data_transfer = data_transfer

    def dispatch(self) -> bool:
        self.prepare_upper_definition(self._data_transfer.upper)
        return self._data_transfer.transfer(self._config.storage.strategy,
                                            self._config,
                                            self._db_mirror,
                                            self._tbl_mirror)
