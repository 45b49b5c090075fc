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

import os
import shutil
import tempfile
import unittest

from unittest import mock

import hms_mirror_test.utils as utils

from hms_mirror import sql
from hms_mirror.connection_pools import ConnectionPools
from hms_mirror.errors import ConfigurationError, RetryFileError
from hms_mirror.mirror import Mirror, get_parser, validate_arguments
from hms_mirror.model.enums import (Environment, MetadataStrategy, ReplicationStrategy, Stage,
                                    StorageStrategy)


class TestMirror(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.retry_dir = os.path.join(self.tmp_dir, "retry")
        self.config_file = os.path.join(self.tmp_dir, "default.yaml")
        with open(self.config_file, "w") as fd:
            fd.write(utils.make_config().to_yaml())
        self.report_file = os.path.join(self.tmp_dir, "report.md")

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    def _args(self, *argv):
        return get_parser().parse_args(["--config", self.config_file] + list(argv))

    def _pools(self):
        self.lower_runner = utils.FakeRunner({
            sql.SHOW_TABLES % "logs": ["events"],
            sql.SHOW_CREATE_TABLE % ("logs", "events"): utils.external_table_definition(),
        })
        self.upper_runner = utils.FakeRunner(
            failures=[sql.SHOW_CREATE_TABLE % ("logs", "events")])
        pools = ConnectionPools(os.path.join(self.tmp_dir, "sql"))
        pools.set_runner(Environment.LOWER, self.lower_runner)
        pools.set_runner(Environment.UPPER, self.upper_runner)
        return pools

    def _mirror(self, *argv):
        mirror = Mirror(retry_dir=self.retry_dir)
        mirror.init(self._args(*argv))
        return mirror

    def test_parser(self):
        args = self._args("--storage")
        self.assertEqual("", args.storage)
        self.assertIsNone(args.metadata)
        self.assertFalse(args.execute)
        with mock.patch("sys.stderr"):
            self.assertRaises(SystemExit, self._args)
            self.assertRaises(SystemExit, self._args, "--metadata", "--storage")

    def test_init_overrides(self):
        mirror = self._mirror("--storage", "sql", "--databases", "logs, sales",
                              "--table_filter", "events.*", "--db_prefix", "mirror_",
                              "--replication_strategy", "overwrite", "--execute")
        config = mirror.config
        self.assertEqual(Stage.STORAGE, config.stage)
        self.assertEqual(StorageStrategy.SQL, config.storage.strategy)
        self.assertEqual(["logs", "sales"], config.databases)
        self.assertEqual("events.*", config.tbl_regex)
        self.assertEqual("mirror_sales", config.resolve_database("sales"))
        self.assertEqual(ReplicationStrategy.OVERWRITE, config.replication_strategy)
        self.assertTrue(config.execute)

    def test_init_errors(self):
        self.assertRaises(ConfigurationError, self._mirror, "--storage", "sideways")
        self.assertRaises(ConfigurationError, self._mirror, "--metadata", "--acid")

    def test_validate_arguments(self):
        with mock.patch("hms_mirror.utils.print_utils.print_red"):
            self.assertRaises(SystemExit, validate_arguments, self._args("--metadata", "--commit"))
            self.assertRaises(SystemExit, validate_arguments,
                              self._args("--metadata", "--databases", "logs",
                                         "--db_regex", "logs.*"))
            args = get_parser().parse_args(["--config", os.path.join(self.tmp_dir, "missing"),
                                            "--metadata"])
            self.assertRaises(SystemExit, validate_arguments, args)
        validate_arguments(self._args("--metadata", "--share_storage", "--commit"))

    def test_backup_confirmations(self):
        mirror = self._mirror("--metadata", "--execute")
        with mock.patch("builtins.input", side_effect=["TRUE", "true", "Yes"]):
            self.assertTrue(mirror._confirm_backups())
        with mock.patch("builtins.input", side_effect=["TRUE", "no"]):
            self.assertFalse(mirror._confirm_backups())
        self.assertTrue(self._mirror("--metadata")._confirm_backups())

    def test_run_and_retry(self):
        mirror = self._mirror("--metadata", "--execute", "--accept",
                              "--output_file", self.report_file)
        self.assertTrue(mirror.doit(self._pools()))

        self.assertIn(sql.CREATE_DB % "logs", self.upper_runner.executed)
        self.assertEqual(1, len(os.listdir(self.retry_dir)))
        with open(self.report_file, encoding="utf-8") as fd:
            self.assertIn("| events | SUCCESS |", fd.read())

        mirror = self._mirror("--metadata", "--execute", "--accept", "--retry",
                              "--output_file", self.report_file)
        self.assertTrue(mirror.doit(self._pools()))
        self.assertEqual([], self.lower_runner.executed)
        self.assertEqual([], self.upper_runner.executed)
        with open(self.report_file, encoding="utf-8") as fd:
            self.assertIn("| events | RETRY_SKIPPED_PAST_SUCCESS |", fd.read())

    def test_retry_keeps_stage_and_strategy(self):
        mirror = self._mirror("--metadata", "--accept", "--output_file", self.report_file)
        self.assertTrue(mirror.doit(self._pools()))

        mirror = self._mirror("--storage", "--accept", "--retry")
        self.assertRaises(ConfigurationError, mirror.doit, self._pools())
        mirror = self._mirror("--metadata", "transition", "--accept", "--retry")
        self.assertRaises(ConfigurationError, mirror.doit, self._pools())

        mirror = self._mirror("--metadata", "direct", "--accept", "--retry",
                              "--output_file", self.report_file)
        self.assertTrue(mirror.doit(self._pools()))
        self.assertEqual(MetadataStrategy.DIRECT, mirror.config.metadata.strategy)

    def test_retry_without_previous_run(self):
        mirror = self._mirror("--metadata", "--accept", "--retry")
        self.assertRaises(RetryFileError, mirror.doit, self._pools())

    def test_setup_failure(self):
        mirror = self._mirror("--metadata", "--accept", "--output_file", self.report_file)
        pools = self._pools()
        self.lower_runner.failures.add(sql.SHOW_CREATE_TABLE % ("logs", "events"))
        self.assertFalse(mirror.doit(pools))
        self.assertFalse(os.path.exists(self.report_file))


if __name__ == '__main__':
    unittest.main()
