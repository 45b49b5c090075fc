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

import shutil
import tempfile
import unittest

import hms_mirror_test.utils as utils

from hms_mirror import sql
from hms_mirror.model.conversion import Conversion
from hms_mirror.model.enums import (CreateStrategy, Environment, MetadataStrategy, PhaseState,
                                    ReplicationStrategy, Stage, StorageStrategy)
from hms_mirror.model.environment_table import Pair
from hms_mirror.stage.stage_runner import (ACID_METADATA_ISSUE, ACID_OPTION_ISSUE, Decision,
                                           StageRunner, decide)
from hms_mirror.stage.stage_task import CANCELLED_ISSUE


def _tables(n):
    return {"t%d" % i: utils.external_table_definition("t%d" % i) for i in range(n)}


class TestDecide(unittest.TestCase):

    def test_decide(self):
        self.assertEqual(Decision.SCHEDULE, decide(PhaseState.INIT))
        self.assertEqual(Decision.SCHEDULE, decide(PhaseState.STARTED))
        self.assertEqual(Decision.SCHEDULE, decide(PhaseState.ERROR))
        self.assertEqual(Decision.SKIP_PAST_SUCCESS, decide(PhaseState.SUCCESS))
        self.assertEqual(Decision.SKIP, decide(PhaseState.RETRY_SKIPPED_PAST_SUCCESS))


class TestStageRunner(unittest.TestCase):

    def _metadata_runner(self, conversion, config, cluster):
        clusters = {Environment.LOWER: cluster, Environment.UPPER: cluster}
        return StageRunner(config, conversion, clusters)

    def test_metadata_direct(self):
        config = utils.make_config(Stage.METADATA)
        conversion = utils.make_conversion(config, _tables(3))
        cluster = utils.RecordingCluster()
        summary = self._metadata_runner(conversion, config, cluster).run()

        self.assertEqual(3, summary.submitted)
        self.assertEqual(3, summary.succeeded)
        self.assertEqual(0, summary.failed)
        self.assertEqual(3, len(cluster.tracker.calls))
        for _, tbl_mirror in conversion.tables():
            self.assertEqual(PhaseState.SUCCESS, tbl_mirror.phase_state)
            self.assertIsNotNone(tbl_mirror.stage_start)

    def test_metadata_transition(self):
        config = utils.make_config(Stage.METADATA)
        config.metadata.strategy = MetadataStrategy.TRANSITION
        conversion = utils.make_conversion(config, _tables(1))
        cluster = utils.RecordingCluster()
        self._metadata_runner(conversion, config, cluster).run()

        self.assertEqual([("build_transfer_table_schema", "t0"),
                          ("export_schema", "t0"),
                          ("import_transfer_schema_using_lower_data", "t0")],
                         cluster.tracker.calls)

    def test_features_applied_before_dispatch(self):
        config = utils.make_config(Stage.METADATA)
        conversion = utils.make_conversion(config, {"web_logs": utils.text_table_definition()})
        self._metadata_runner(conversion, config, utils.RecordingCluster()).run()

        tbl_mirror = conversion.get_database("logs").get_table("web_logs")
        self.assertIn("ROW FORMAT SERDE", tbl_mirror.get_table_definition(Environment.UPPER))
        self.assertIn("ROW FORMAT DELIMITED", tbl_mirror.get_table_definition(Environment.LOWER))
        self.assertFalse(tbl_mirror.is_there_an_issue())
        self.assertIn(Pair("Feature applied", "BadTextFileDefFeature"), tbl_mirror.actions)

    def test_retry_skips_past_success(self):
        config = utils.make_config(Stage.METADATA)
        conversion = utils.make_conversion(config, _tables(3))
        tables = conversion.get_database("logs").table_mirrors
        tables["t0"].phase_state = PhaseState.SUCCESS
        tables["t1"].phase_state = PhaseState.RETRY_SKIPPED_PAST_SUCCESS
        tables["t2"].phase_state = PhaseState.ERROR

        cluster = utils.RecordingCluster()
        summary = self._metadata_runner(conversion, config, cluster).run()

        self.assertEqual(PhaseState.RETRY_SKIPPED_PAST_SUCCESS, tables["t0"].phase_state)
        self.assertEqual(PhaseState.RETRY_SKIPPED_PAST_SUCCESS, tables["t1"].phase_state)
        self.assertEqual(PhaseState.SUCCESS, tables["t2"].phase_state)
        self.assertEqual([("build_upper_schema_using_lower_data", "t2")], cluster.tracker.calls)
        self.assertEqual(2, summary.skipped)

        # and again, nothing changes for the skipped ones
        cluster = utils.RecordingCluster()
        self._metadata_runner(conversion, config, cluster).run()
        self.assertEqual([], cluster.tracker.calls)
        for tbl_mirror in tables.values():
            self.assertEqual(PhaseState.RETRY_SKIPPED_PAST_SUCCESS, tbl_mirror.phase_state)

    def test_acid_table_rejected_in_metadata(self):
        config = utils.make_config(Stage.METADATA)
        conversion = utils.make_conversion(config, {"orders": utils.acid_table_definition()})
        cluster = utils.RecordingCluster()
        summary = self._metadata_runner(conversion, config, cluster).run()

        tbl_mirror = conversion.get_database("logs").get_table("orders")
        self.assertEqual(PhaseState.ERROR, tbl_mirror.phase_state)
        self.assertEqual([ACID_METADATA_ISSUE], tbl_mirror.issues)
        self.assertEqual([], cluster.tracker.calls)
        self.assertEqual(1, summary.rejected)
        self.assertEqual(0, summary.submitted)

    def test_error_then_success_on_rerun(self):
        config = utils.make_config(Stage.METADATA)
        conversion = utils.make_conversion(config, _tables(2))
        self._metadata_runner(conversion, config, utils.RecordingCluster(fail_tables=["t0"])).run()
        t0 = conversion.get_database("logs").get_table("t0")
        self.assertEqual(PhaseState.ERROR, t0.phase_state)
        self.assertEqual(["METADATA stage failed"], t0.issues)

        cluster = utils.RecordingCluster()
        summary = self._metadata_runner(conversion, config, cluster).run()
        self.assertEqual([("build_upper_schema_using_lower_data", "t0")], cluster.tracker.calls)
        self.assertEqual(1, summary.succeeded)
        self.assertEqual(1, summary.skipped)
        self.assertEqual(PhaseState.SUCCESS, t0.phase_state)
        self.assertEqual([], t0.issues)

    def test_feature_recorded_once_across_runs(self):
        config = utils.make_config(Stage.METADATA)
        conversion = utils.make_conversion(config, {"web_logs": utils.text_table_definition()})
        self._metadata_runner(conversion, config,
                              utils.RecordingCluster(fail_tables=["web_logs"])).run()
        self._metadata_runner(conversion, config, utils.RecordingCluster()).run()

        tbl_mirror = conversion.get_database("logs").get_table("web_logs")
        self.assertEqual(PhaseState.SUCCESS, tbl_mirror.phase_state)
        self.assertEqual([Pair("Feature applied", "BadTextFileDefFeature")], tbl_mirror.actions)
        self.assertEqual([], tbl_mirror.issues)

    def test_rejection_is_recorded_once(self):
        config = utils.make_config(Stage.METADATA)
        conversion = utils.make_conversion(config, {"orders": utils.acid_table_definition()})
        cluster = utils.RecordingCluster()
        self._metadata_runner(conversion, config, cluster).run()
        self._metadata_runner(conversion, config, cluster).run()

        tbl_mirror = conversion.get_database("logs").get_table("orders")
        self.assertEqual(PhaseState.ERROR, tbl_mirror.phase_state)
        self.assertEqual([ACID_METADATA_ISSUE], tbl_mirror.issues)
        self.assertEqual([], cluster.tracker.calls)

    def test_resumed_storage_task_reads_upper_again(self):
        config = utils.make_config(Stage.STORAGE)
        conversion = utils.make_conversion(config, _tables(1))
        tbl_mirror = conversion.get_database("logs").get_table("t0")
        tbl_mirror.phase_state = PhaseState.STARTED
        transfer = utils.RecordingTransfer(
            upper_tables={"t0": utils.external_table_definition("t0")})
        StageRunner(config, conversion, {}, transfer).run()

        self.assertTrue(tbl_mirror.get_environment_table(Environment.UPPER).exists)
        self.assertEqual(PhaseState.SUCCESS, tbl_mirror.phase_state)

    def test_acid_table_requires_option_in_storage(self):
        config = utils.make_config(Stage.STORAGE)
        conversion = utils.make_conversion(config, {"orders": utils.acid_table_definition()})
        transfer = utils.RecordingTransfer()
        StageRunner(config, conversion, {}, transfer).run()

        tbl_mirror = conversion.get_database("logs").get_table("orders")
        self.assertEqual(PhaseState.ERROR, tbl_mirror.phase_state)
        self.assertEqual([ACID_OPTION_ISSUE], tbl_mirror.issues)
        self.assertEqual([], transfer.tracker.calls)

    def test_acid_table_with_option_in_storage(self):
        config = utils.make_config(Stage.STORAGE)
        config.storage.migrate_acid = True
        config.storage.strategy = StorageStrategy.EXPORT_IMPORT
        conversion = utils.make_conversion(config, {"orders": utils.acid_table_definition()})
        transfer = utils.RecordingTransfer()
        StageRunner(config, conversion, {}, transfer).run()

        self.assertEqual([("transfer_EXPORT_IMPORT", "orders")], transfer.tracker.calls)

    def test_storage_pool_of_one_runs_sequentially(self):
        config = utils.make_config(Stage.STORAGE, concurrency=1)
        conversion = utils.make_conversion(config, _tables(3))
        transfer = utils.RecordingTransfer(delay=0.05)
        summary = StageRunner(config, conversion, {}, transfer).run()

        self.assertEqual(1, transfer.tracker.max_running)
        self.assertEqual(3, summary.succeeded)
        for _, tbl_mirror in conversion.tables():
            self.assertIn(tbl_mirror.phase_state, (PhaseState.SUCCESS, PhaseState.ERROR))

    def test_pool_bounds_concurrency(self):
        config = utils.make_config(Stage.METADATA, concurrency=3)
        conversion = utils.make_conversion(config, _tables(10))
        cluster = utils.RecordingCluster(delay=0.05)
        summary = self._metadata_runner(conversion, config, cluster).run()

        self.assertLessEqual(cluster.tracker.max_running, 3)
        self.assertEqual(10, summary.succeeded)
        self.assertEqual(0, cluster.tracker.running)

    def test_failures_are_isolated(self):
        config = utils.make_config(Stage.METADATA)
        conversion = utils.make_conversion(config, _tables(3))
        cluster = utils.RecordingCluster(fail_tables=["t0"], raise_tables=["t1"])
        summary = self._metadata_runner(conversion, config, cluster).run()

        tables = conversion.get_database("logs").table_mirrors
        self.assertEqual(PhaseState.ERROR, tables["t0"].phase_state)
        self.assertTrue(tables["t0"].is_there_an_issue())
        self.assertEqual(PhaseState.ERROR, tables["t1"].phase_state)
        self.assertIn("RuntimeError: metastore unreachable", tables["t1"].issues)
        self.assertEqual(PhaseState.SUCCESS, tables["t2"].phase_state)
        self.assertEqual(2, summary.failed)
        self.assertEqual(1, summary.succeeded)

    def test_cancel_before_start(self):
        config = utils.make_config(Stage.METADATA, concurrency=1)
        conversion = utils.make_conversion(config, _tables(3))
        cluster = utils.RecordingCluster()
        runner = self._metadata_runner(conversion, config, cluster)
        runner.cancel()
        summary = runner.run()

        self.assertEqual([], cluster.tracker.calls)
        self.assertEqual(3, summary.failed)
        for _, tbl_mirror in conversion.tables():
            self.assertEqual(PhaseState.ERROR, tbl_mirror.phase_state)
            self.assertEqual([CANCELLED_ISSUE], tbl_mirror.issues)


class TestResumeStartedTable(unittest.TestCase):
    """A run stopped after UPPER was changed, the table is still STARTED."""

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.config = utils.make_config(Stage.METADATA)
        self.conversion = utils.make_conversion(self.config,
                                                {"events": utils.external_table_definition()})
        show_create = sql.SHOW_CREATE_TABLE % ("logs", "events")
        self._run(utils.FakeRunner(failures=[show_create]))

        tbl_mirror = self._events()
        self.assertEqual(PhaseState.SUCCESS, tbl_mirror.phase_state)
        self.assertEqual(CreateStrategy.CREATE,
                         tbl_mirror.get_environment_table(Environment.UPPER).create_strategy)

        # what the retry file holds when the process died mid-task
        self.conversion = Conversion.from_dict(self.conversion.to_dict())
        self._events().phase_state = PhaseState.STARTED
        self.upper_runner = utils.FakeRunner({show_create: utils.external_table_definition()})

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    def _events(self):
        return self.conversion.get_database("logs").get_table("events")

    def _run(self, upper_runner):
        clusters = utils.build_clusters(self.config, self.tmp_dir, upper_runner=upper_runner)
        return StageRunner(self.config, self.conversion, clusters).run()

    def test_existing_upper_table_is_left(self):
        self._run(self.upper_runner)

        tbl_mirror = self._events()
        upper = tbl_mirror.get_environment_table(Environment.UPPER)
        self.assertEqual(PhaseState.SUCCESS, tbl_mirror.phase_state)
        self.assertTrue(upper.exists)
        self.assertEqual(CreateStrategy.LEAVE, upper.create_strategy)
        self.assertEqual([], upper.sql)
        self.assertEqual(["Schema exists already, no action taken (SYNCHRONIZE)"], upper.issues)
        self.assertEqual([sql.SHOW_CREATE_TABLE % ("logs", "events")], self.upper_runner.executed)

    def test_existing_upper_table_is_replaced(self):
        self.config.replication_strategy = ReplicationStrategy.OVERWRITE
        self._run(self.upper_runner)

        upper = self._events().get_environment_table(Environment.UPPER)
        self.assertEqual(CreateStrategy.REPLACE, upper.create_strategy)
        self.assertIn(sql.DROP_TABLE % ("logs", "events"), self.upper_runner.executed)
        self.assertEqual(["Create database", "Drop table", "Create table using LOWER data"],
                         [p.description for p in upper.sql])


if __name__ == '__main__':
    unittest.main()
