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
import time

from enum import Enum

from hms_mirror.config import Config
from hms_mirror.model.conversion import Conversion
from hms_mirror.model.enums import Environment, PhaseState, Stage, StorageStrategy
from hms_mirror.model.table_mirror import TableMirror
from hms_mirror.stage.metadata import Metadata
from hms_mirror.stage.storage import Storage
from hms_mirror.utils import print_utils, table_utils
from hms_mirror.utils.task_pool import TaskPool

ACID_METADATA_ISSUE = "ACID Table not supported for METADATA phase"
ACID_OPTION_ISSUE = "ACID Table migration requires the 'acid' option"
ACID_STRATEGY_ISSUE = ("ACID Table data can only be moved with the EXPORT_IMPORT or HYBRID "
                       "strategies")


class Decision(Enum):
    SCHEDULE = "SCHEDULE"
    SKIP_PAST_SUCCESS = "SKIP_PAST_SUCCESS"
    SKIP = "SKIP"


def decide(phase_state: PhaseState) -> Decision:
    """What a stage does with a table, from its phase state alone."""
    if phase_state in (PhaseState.INIT, PhaseState.STARTED, PhaseState.ERROR):
        return Decision.SCHEDULE
    if phase_state == PhaseState.SUCCESS:
        return Decision.SKIP_PAST_SUCCESS
    return Decision.SKIP


class StageSummary:
    def __init__(self, stage: Stage):
        self.stage = stage
        self.submitted = 0
        self.skipped = 0
        self.rejected = 0
        self.succeeded = 0
        self.failed = 0
        self.elapsed = 0.0
        self.results = []

    def __str__(self):
        return ("[%s] submitted: %d, skipped: %d, rejected: %d, succeed: %d, failed: %d, "
                "elapsed: %.2fs" % (self.stage.value, self.submitted, self.skipped,
                                    self.rejected, self.succeeded, self.failed, self.elapsed))


class StageRunner:
    """Walks every table of the Conversion and runs one stage over them.

    Tasks go to a pool sized by the stage's concurrency. run() only returns
    once every submitted task has finished, and the pool is never reused.
    """

    def __init__(self, config: Config, conversion: Conversion, clusters: dict,
                 data_transfer=None, logger=None):
        self._config = config
        self._conversion = conversion
        self._clusters = clusters
        self._data_transfer = data_transfer
        self._logger = logger or logging.getLogger("stage runner")
        self._cancel_event = threading.Event()

    def cancel(self):
        """Tasks that haven't started yet end in ERROR instead of running."""
        self._logger.warning("cancel requested")
        self._cancel_event.set()

    def _check_preconditions(self, stage: Stage, tbl_mirror: TableMirror):
        acid = table_utils.is_acid(tbl_mirror.get_table_definition(Environment.LOWER))
        if not acid:
            return None
        if stage == Stage.METADATA:
            return ACID_METADATA_ISSUE
        if not self._config.storage.migrate_acid:
            return ACID_OPTION_ISSUE
        if self._config.storage.strategy in (StorageStrategy.SQL, StorageStrategy.DISTCP):
            return ACID_STRATEGY_ISSUE
        return None

    def _create_task(self, stage: Stage, db_mirror, tbl_mirror):
        if stage == Stage.METADATA:
            return Metadata(self._config, db_mirror, tbl_mirror, self._clusters,
                            self._cancel_event, self._logger)
        return Storage(self._config, db_mirror, tbl_mirror, self._data_transfer,
                       self._cancel_event, self._logger)

    def run(self, stage: Stage = None) -> StageSummary:
        stage = stage or self._config.stage
        summary = StageSummary(stage)
        start = time.time()
        print_utils.print_yellow("[%s stage starts]\n" % stage.value)

        pool = TaskPool(self._config.concurrency_for(stage),
                        "%s-stage" % stage.value.lower(),
                        self._logger)
        futures = []
        try:
            for db_mirror, tbl_mirror in self._conversion.tables():
                decision = decide(tbl_mirror.phase_state)
                if decision == Decision.SKIP_PAST_SUCCESS:
                    tbl_mirror.phase_state = PhaseState.RETRY_SKIPPED_PAST_SUCCESS
                    self._logger.info("%s: succeeded in a previous run, skipped"
                                      % tbl_mirror.qualified_name)
                    summary.skipped += 1
                    continue
                if decision == Decision.SKIP:
                    self._logger.info("%s: %s, skipped" % (tbl_mirror.qualified_name,
                                                           tbl_mirror.phase_state.value))
                    summary.skipped += 1
                    continue

                tbl_mirror.reset_attempt()
                issue = self._check_preconditions(stage, tbl_mirror)
                if issue is not None:
                    tbl_mirror.add_issue(issue)
                    tbl_mirror.phase_state = PhaseState.ERROR
                    self._logger.warning("%s: %s" % (tbl_mirror.qualified_name, issue))
                    summary.rejected += 1
                    continue

                futures.append(pool.submit(self._create_task(stage, db_mirror, tbl_mirror)))
                summary.submitted += 1

            try:
                pool.join_all()
            except KeyboardInterrupt:
                # let running tasks finish, the queued ones end up cancelled
                self.cancel()
                pool.join_all()
        finally:
            pool.shutdown()

        for future in futures:
            result = future.result()
            summary.results.append(result)
            if result.success:
                summary.succeeded += 1
                print_utils.print_green("[SUCCEED] %s.%s\n" % (result.db_name, result.table_name))
            else:
                summary.failed += 1
                print_utils.print_red("[FAILED] %s.%s: %s\n" % (result.db_name,
                                                                result.table_name,
                                                                "; ".join(result.issues)))

        summary.elapsed = time.time() - start
        self._logger.info(str(summary))
        print_utils.print_yellow("%s\n" % summary)
        return summary
