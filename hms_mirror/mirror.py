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

import argparse
import logging
import os
import sys
import time
import traceback

from hms_mirror.cluster import Cluster
from hms_mirror.collector import Collector
from hms_mirror.config import Config, DEFAULT_CONFIG_PATH
from hms_mirror.connection_pools import ConnectionPools
from hms_mirror.data_transfer import DataTransfer
from hms_mirror.errors import ConfigurationError, MirrorException
from hms_mirror.hive_sql_runner import DEFAULT_LOG_ROOT
from hms_mirror.model.conversion import Conversion
from hms_mirror.model.enums import (Environment, MetadataStrategy, ReplicationStrategy, Stage,
                                    StorageStrategy, parse_enum)
from hms_mirror.reporter import Reporter, write_report
from hms_mirror.stage.stage_runner import StageRunner
from hms_mirror.state_maintenance import DEFAULT_INTERVAL_MS, DEFAULT_RETRY_DIR, StateMaintenance
from hms_mirror.utils import print_utils

HMS_MIRROR_HOME = os.path.join(os.path.expanduser("~"), ".hms-mirror")
LOG_FILE = os.path.join(HMS_MIRROR_HOME, "logs", "hms-mirror.log")
REPORT_DIR = os.path.join(HMS_MIRROR_HOME, "reports")

BACKUP_CONFIRMATIONS = [
    "I have made backups of both the 'Hive Metastore' in the LOWER and UPPER clusters "
    "(TRUE to proceed)",
    "I've taken 'Snapshots' of the locations used by the tables in the LOWER cluster "
    "(TRUE to proceed)",
    "'Yes', I'm ready and have read the documentation on this process (Yes to proceed)",
]


def init_logging(verbose: bool, log_file: str = LOG_FILE) -> logging.Logger:
    os.makedirs(os.path.dirname(log_file), exist_ok=True)
    level = logging.DEBUG if verbose else logging.INFO
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(threadName)s] "
                                           "%(name)s: %(message)s"))
    handler.setLevel(level)
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger = logging.getLogger("hms-mirror")
    logger.addHandler(handler)
    logger.addHandler(console)
    logger.setLevel(level)
    return logger


class Mirror:
    def __init__(self, logger=None, retry_dir=DEFAULT_RETRY_DIR):
        self._logger = logger or logging.getLogger("hms-mirror")
        self._retry_dir = retry_dir
        self._config = None
        self._config_file = None
        self._retry = False
        self._accept = False
        self._output_file = None
        self._explicit_strategy = None

    @property
    def config(self) -> Config:
        return self._config

    def init(self, args):
        """Builds the run configuration from the config file and the command line."""
        self._config_file = args.config
        self._retry = args.retry
        self._accept = args.accept
        self._output_file = args.output_file

        config = Config.load(args.config)
        try:
            if args.metadata is not None:
                config.stage = Stage.METADATA
                if args.metadata:
                    config.metadata.strategy = parse_enum(MetadataStrategy, args.metadata,
                                                          "metadata strategy")
                    self._explicit_strategy = config.metadata.strategy
            elif args.storage is not None:
                config.stage = Stage.STORAGE
                if args.storage:
                    config.storage.strategy = parse_enum(StorageStrategy, args.storage,
                                                         "storage strategy")
                    self._explicit_strategy = config.storage.strategy
            if args.replication_strategy is not None:
                config.replication_strategy = parse_enum(ReplicationStrategy,
                                                         args.replication_strategy,
                                                         "replication strategy")
        except ValueError as e:
            raise ConfigurationError(str(e))

        if args.databases is not None:
            config.databases = [db.strip() for db in args.databases.split(",") if db.strip()]
        if args.db_regex is not None:
            config.db_regex = args.db_regex
        if args.table_filter is not None:
            config.tbl_regex = args.table_filter
        if args.db_prefix is not None:
            config.db_prefix = args.db_prefix
        if args.share_storage:
            config.share_storage = True
        if args.commit:
            config.commit_to_upper = True
        if args.acid:
            config.storage.migrate_acid = True
        config.execute = args.execute

        config.validate()
        self._config = config
        self._logger.info("configuration:\n%s" % config.to_yaml())

    def _check_retry_config(self, saved: Config):
        """A retry resumes the saved stage and strategy, the command line can't change them."""
        if saved.stage != self._config.stage:
            raise ConfigurationError("The run being retried is a %s run, retry it with --%s" % (
                saved.stage.value, saved.stage.value.lower()))
        if self._explicit_strategy is None:
            return
        if saved.stage == Stage.METADATA:
            saved_strategy = saved.metadata.strategy
        else:
            saved_strategy = saved.storage.strategy
        if saved_strategy != self._explicit_strategy:
            raise ConfigurationError("The run being retried uses the %s strategy, not %s" % (
                saved_strategy.value, self._explicit_strategy.value))

    def _confirm_backups(self) -> bool:
        if not self._config.execute or self._accept:
            return True
        for question in BACKUP_CONFIRMATIONS:
            print_utils.print_yellow(question + ": ")
            answer = input().strip()
            expected = question[question.rindex("(") + 1:].split()[0]
            if answer.upper() != expected.strip("'").upper():
                print_utils.print_red("Aborting, you didn't confirm: %s\n" % question)
                return False
        return True

    def _init_pools(self, config: Config) -> ConnectionPools:
        pools = ConnectionPools(DEFAULT_LOG_ROOT, self._logger.getChild("pools"))
        for env in Environment:
            pools.add_hive_server2(env, config.get_cluster(env).hive_server2)
        pools.init()
        return pools

    def _build_clusters(self, config: Config, pools: ConnectionPools) -> dict:
        return {env: Cluster(env, config.get_cluster(env), pools,
                             self._logger.getChild("cluster.%s" % env.value.lower()))
                for env in Environment}

    def doit(self, pools: ConnectionPools = None) -> bool:
        """Runs the configured stage. Returns False when the run stopped before the stage."""
        if not self._confirm_backups():
            return False

        date_marker = time.strftime("%Y-%m-%d_%H-%M-%S")
        state_maintenance = StateMaintenance(DEFAULT_INTERVAL_MS, self._config_file, date_marker,
                                             self._retry_dir,
                                             logger=self._logger.getChild("state"))
        config = self._config
        if self._retry:
            conversion = state_maintenance.load_state()
            if conversion.config is not None:
                self._check_retry_config(conversion.config)
                # dry-run or execute is always the operator's current choice
                conversion.config.execute = config.execute
                config = conversion.config
            else:
                conversion.config = config
            self._config = config
            print_utils.print_yellow("[Retrying run %s]\n" % state_maintenance.date_marker)
        else:
            conversion = Conversion(config)
        state_maintenance.set_conversion(conversion)

        pools = pools or self._init_pools(config)
        clusters = self._build_clusters(config, pools)
        data_transfer = DataTransfer(clusters, self._logger.getChild("transfer"))
        if config.stage == Stage.STORAGE and not data_transfer.fix_config(config):
            raise ConfigurationError("Nothing to transfer: the UPPER cluster already shares "
                                     "the LOWER storage, use 'acid' to migrate ACID tables.")

        if not self._retry:
            collector = Collector(config, conversion, clusters, self._logger.getChild("collector"))
            if not collector.collect():
                state_maintenance.delete_state()
                print_utils.print_red("Setup failed, see %s\n" % LOG_FILE)
                return False
            state_maintenance.save_state()
        print_utils.print_yellow("%s\n" % conversion)

        reporter = Reporter(conversion, logger=self._logger.getChild("reporter"))
        runner = StageRunner(config, conversion, clusters, data_transfer,
                             self._logger.getChild("stage"))
        state_maintenance.start()
        reporter.start()
        try:
            runner.run(config.stage)
        finally:
            reporter.stop()
            state_maintenance.stop()
            pools.close()

        report_file = self._output_file or os.path.join(
            REPORT_DIR, "%s_%s.md" % (config.stage.value.lower(), state_maintenance.date_marker))
        try:
            write_report(report_file, conversion, config,
                         {"retryFile": state_maintenance.get_retry_file(),
                          "dateMarker": state_maintenance.date_marker})
            print_utils.print_green("Status report: %s\n" % report_file)
        except OSError:
            self._logger.error("writing report %s failed:\n%s" % (report_file,
                                                                   traceback.format_exc()))
            print_utils.print_red("Couldn't write report %s\n" % report_file)
        return True


def validate_arguments(args):
    if not os.path.exists(args.config):
        print_utils.print_red("Couldn't locate configuration file: %s\n" % args.config)
        sys.exit(1)
    if args.commit and not args.share_storage:
        print_utils.print_red("--commit is only allowed together with --share_storage\n")
        sys.exit(1)
    if args.databases is not None and args.db_regex is not None:
        print_utils.print_red("Specify either --databases or --db_regex, not both\n")
        sys.exit(1)


def get_parser():
    parser = argparse.ArgumentParser(description='Run hms-mirror')
    parser.add_argument(
        "--config",
        required=False,
        default=DEFAULT_CONFIG_PATH,
        type=str,
        help="Path of the YAML configuration file, default: %s" % DEFAULT_CONFIG_PATH)
    stage = parser.add_mutually_exclusive_group(required=True)
    stage.add_argument(
        "--metadata",
        nargs="?",
        const="",
        type=str,
        help="Run the METADATA stage, strategy: DIRECT(default)|TRANSITION")
    stage.add_argument(
        "--storage",
        nargs="?",
        const="",
        type=str,
        help="Run the STORAGE stage, strategy: SQL|EXPORT_IMPORT|HYBRID(default)|DISTCP")
    parser.add_argument(
        "--databases",
        required=False,
        type=str,
        help="Comma separated list of databases to mirror")
    parser.add_argument(
        "--db_regex",
        required=False,
        type=str,
        help="Mirror the LOWER databases matching this regular expression")
    parser.add_argument(
        "--table_filter",
        required=False,
        type=str,
        help="Only mirror the tables matching this regular expression")
    parser.add_argument(
        "--db_prefix",
        required=False,
        type=str,
        help="Prefix added to the database names on the UPPER cluster")
    parser.add_argument(
        "--share_storage",
        required=False,
        const=True,
        action="store_const",
        default=False,
        help="LOWER and UPPER clusters share the same storage")
    parser.add_argument(
        "--commit",
        required=False,
        const=True,
        action="store_const",
        default=False,
        help="Make UPPER the owner of the data (external.table.purge)")
    parser.add_argument(
        "--acid",
        required=False,
        const=True,
        action="store_const",
        default=False,
        help="Migrate ACID tables, STORAGE stage with EXPORT_IMPORT or HYBRID only")
    parser.add_argument(
        "--replication_strategy",
        required=False,
        type=str,
        help="What to do with tables existing on UPPER: SYNCHRONIZE(default)|OVERWRITE")
    parser.add_argument(
        "--execute",
        required=False,
        const=True,
        action="store_const",
        default=False,
        help="Execute the statements, without it the run is a dry-run")
    parser.add_argument(
        "--accept",
        required=False,
        const=True,
        action="store_const",
        default=False,
        help="Accept the backup confirmations without prompting")
    parser.add_argument(
        "--retry",
        required=False,
        const=True,
        action="store_const",
        default=False,
        help="Resume the previous run of this configuration file")
    parser.add_argument(
        "--output_file",
        required=False,
        type=str,
        help="Path of the status report")

    # optional arguments
    parser.add_argument(
        "--verbose",
        required=False,
        const=True,
        action="store_const",
        default=False,
        help="Print detailed information")
    return parser


def main(argv=None) -> int:
    args = get_parser().parse_args(argv)
    validate_arguments(args)
    logger = init_logging(args.verbose)

    mirror = Mirror(logger)
    try:
        mirror.init(args)
        if not mirror.doit():
            return 1
    except MirrorException as e:
        logger.error(traceback.format_exc())
        print_utils.print_red("%s\n" % e)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
