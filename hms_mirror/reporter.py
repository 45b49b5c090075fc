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
import os
import threading
import time

from hms_mirror.config import Config
from hms_mirror.model.conversion import Conversion
from hms_mirror.model.enums import Environment, PhaseState
from hms_mirror.utils import print_utils


class Reporter:
    """Prints the progress of a run on an interval until stopped."""

    def __init__(self, conversion: Conversion, interval: float = 10, logger=None):
        self._conversion = conversion
        self._interval = interval
        self._logger = logger or logging.getLogger("reporter")
        self._stop_event = threading.Event()
        self._thread = None

    def set_conversion(self, conversion: Conversion):
        self._conversion = conversion

    def _report_progress(self):
        while not self._stop_event.wait(self._interval):
            self.refresh()

    def refresh(self):
        summary = self._conversion.phase_summary()
        total = sum(summary.values())
        done = (summary[PhaseState.SUCCESS] + summary[PhaseState.ERROR] +
                summary[PhaseState.RETRY_SKIPPED_PAST_SUCCESS])
        progress = (done / total) * 100 if total > 0 else 100.0
        progress_format = ("[Progress][%.2f%%] waiting: %d, running: %d, succeed: %d, "
                           "failed: %d, skipped: %d, total: %d\n")
        print_utils.print_yellow(progress_format % (progress,
                                                    summary[PhaseState.INIT],
                                                    summary[PhaseState.STARTED],
                                                    summary[PhaseState.SUCCESS],
                                                    summary[PhaseState.ERROR],
                                                    summary[PhaseState.RETRY_SKIPPED_PAST_SUCCESS],
                                                    total))

    def start(self):
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._report_progress, name="reporter",
                                        daemon=True)
        self._thread.start()

    def stop(self):
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join()
        self._thread = None
        self.refresh()


def _cell(values) -> str:
    # markdown table cells can't hold raw newlines or pipes
    return "<br/>".join(str(v).replace("|", "\\|").replace("\n", " ") for v in values)


def to_report(conversion: Conversion, config: Config, variables: dict = None) -> str:
    """Renders the run as a Markdown status document."""
    variables = variables or {}
    lines = ["# HMS-Mirror", ""]

    lines.append("## Run Log")
    lines.append("")
    lines.append("| Date | Elapsed Time |")
    lines.append("|:---|:---|")
    lines.append("| %s | %.2fs |" % (time.strftime("%Y-%m-%d %H:%M:%S",
                                                  time.localtime(conversion.start)),
                                    time.time() - conversion.start))
    lines.append("")
    if len(variables) > 0:
        lines.append("| Variable | Value |")
        lines.append("|:---|:---|")
        for k in sorted(variables):
            lines.append("| %s | %s |" % (k, _cell([variables[k]])))
        lines.append("")

    if config is not None:
        lines.append("## Config")
        lines.append("")
        lines.append("```yaml")
        lines.append(config.to_yaml().rstrip())
        lines.append("```")
        lines.append("")

    for db_name, db_mirror in conversion.databases.items():
        lines.append("## DB: %s" % db_name)
        lines.append("")
        if len(db_mirror.issues) > 0:
            for issue in db_mirror.issues:
                lines.append("- %s" % issue)
            lines.append("")
        lines.append("| Table | Phase State | Duration | Partition Count | Actions | "
                     "Added Properties | Issues |")
        lines.append("|:---|:---|:---|:---|:---|:---|:---|")
        for tbl_name, tbl_mirror in db_mirror.table_mirrors.items():
            actions = ["%s: %s" % (a.description, a.action) for a in tbl_mirror.actions]
            issues = list(tbl_mirror.issues)
            for env in Environment:
                issues += ["%s: %s" % (env.value, i)
                           for i in tbl_mirror.get_environment_table(env).issues]
            lines.append("| %s | %s | %.2fs | %d | %s | %s | %s |" % (
                tbl_name,
                tbl_mirror.phase_state.value,
                tbl_mirror.stage_duration / 1000.0,
                len(tbl_mirror.get_partition_definition(Environment.LOWER)),
                _cell(actions),
                _cell(tbl_mirror.prop_add()),
                _cell(issues)))
        lines.append("")

        for tbl_name, tbl_mirror in db_mirror.table_mirrors.items():
            statements = []
            for env in Environment:
                for pair in tbl_mirror.get_environment_table(env).sql:
                    statements.append((env, pair))
            if len(statements) == 0:
                continue
            lines.append("### %s SQL" % tbl_name)
            lines.append("")
            for env, pair in statements:
                lines.append("- %s %s" % (env.value, pair.description))
                lines.append("")
                lines.append("```sql")
                lines.append(pair.action)
                lines.append("```")
                lines.append("")

    return "\n".join(lines) + "\n"


def write_report(path: str, conversion: Conversion, config: Config, variables: dict = None):
    report_dir = os.path.dirname(path)
    if report_dir:
        os.makedirs(report_dir, exist_ok=True)
    with open(path, "w", encoding="utf-8") as fd:
        fd.write(to_report(conversion, config, variables))
