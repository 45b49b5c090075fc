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
import traceback

from hms_mirror.config import Config
from hms_mirror.feature import apply_features
from hms_mirror.model.db_mirror import DBMirror
from hms_mirror.model.enums import Environment, PhaseState
from hms_mirror.model.table_mirror import TableMirror

CANCELLED_ISSUE = "Cancelled before start"


class TaskResult:
    def __init__(self, db_name, table_name, phase_state, issues, elapsed_ms):
        self.db_name = db_name
        self.table_name = table_name
        self.phase_state = phase_state
        self.issues = issues
        self.elapsed_ms = elapsed_ms

    @property
    def success(self):
        return self.phase_state == PhaseState.SUCCESS

    def __repr__(self):
        return "TaskResult(%s.%s, %s, %dms)" % (self.db_name, self.table_name,
                                                self.phase_state.value, self.elapsed_ms)


class StageTask:
    """Runs one stage for exactly one table.

    Whatever happens inside dispatch() ends up as SUCCESS or ERROR on the
    owning TableMirror. Nothing raised by a dispatch step leaves __call__.
    """

    stage_name = None

    def __init__(self, config: Config, db_mirror: DBMirror, tbl_mirror: TableMirror,
                 cancel_event=None, logger=None):
        self._config = config
        self._db_mirror = db_mirror
        self._tbl_mirror = tbl_mirror
        self._cancel_event = cancel_event
        self._logger = logger or logging.getLogger("stage task")
        # an earlier attempt may have changed UPPER after collection looked at it
        self._resumed = tbl_mirror.phase_state in (PhaseState.STARTED, PhaseState.ERROR)

    @property
    def tbl_mirror(self):
        return self._tbl_mirror

    def dispatch(self) -> bool:
        raise NotImplementedError()

    def prepare_upper_definition(self, upper_cluster):
        """Copies the LOWER definition to UPPER and repairs what can't be replayed.

        A resumed table has its UPPER existence read again from upper_cluster.
        """
        tbl_mirror = self._tbl_mirror
        upper = tbl_mirror.get_environment_table(Environment.UPPER)
        if self._resumed:
            upper_db = self._config.resolve_database(self._db_mirror.name)
            current = upper_cluster.get_table_definition(upper_db, tbl_mirror.name)
            upper.exists = current is not None
            self._logger.info("%s resumed, UPPER table %s" % (
                tbl_mirror.qualified_name, "exists" if upper.exists else "doesn't exist"))
        upper.definition = list(tbl_mirror.get_table_definition(Environment.LOWER))
        for name in apply_features(upper.definition, self._logger):
            tbl_mirror.add_action("Feature applied", name)

    def _result(self) -> TaskResult:
        tbl_mirror = self._tbl_mirror
        return TaskResult(tbl_mirror.db_name, tbl_mirror.name, tbl_mirror.phase_state,
                          list(tbl_mirror.issues), tbl_mirror.stage_duration)

    def __call__(self) -> TaskResult:
        tbl_mirror = self._tbl_mirror
        if self._cancel_event is not None and self._cancel_event.is_set():
            tbl_mirror.add_issue(CANCELLED_ISSUE)
            tbl_mirror.finish_stage(PhaseState.ERROR)
            return self._result()

        tbl_mirror.start_stage()
        self._logger.info("%s stage started for %s" % (self.stage_name,
                                                       tbl_mirror.qualified_name))
        try:
            if self.dispatch():
                phase_state = PhaseState.SUCCESS
            else:
                tbl_mirror.add_issue("%s stage failed" % self.stage_name)
                phase_state = PhaseState.ERROR
        except Exception as e:
            tbl_mirror.add_issue("%s: %s" % (type(e).__name__, e))
            self._logger.error("%s stage failed for %s:\n%s" % (self.stage_name,
                                                                tbl_mirror.qualified_name,
                                                                traceback.format_exc()))
            phase_state = PhaseState.ERROR

        tbl_mirror.finish_stage(phase_state)
        self._logger.info("%s stage %s for %s in %dms" % (self.stage_name,
                                                          phase_state.value,
                                                          tbl_mirror.qualified_name,
                                                          tbl_mirror.stage_duration))
        return self._result()
