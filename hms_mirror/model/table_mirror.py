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

import time

from hms_mirror.model.enums import Environment, PhaseState
from hms_mirror.model.environment_table import EnvironmentTable, Pair


class TableMirror:
    """Migration record of a single table, the unit of concurrency.

    During a stage a TableMirror is only ever mutated by the one task the
    stage runner assigned to it.
    """

    def __init__(self, db_name: str, name: str):
        self.db_name = db_name
        self.name = name
        self.phase_state = PhaseState.INIT
        self.stage_start = None
        self.stage_duration = 0
        self.issues = []
        self.actions = []
        self.environments = {
            Environment.LOWER: EnvironmentTable(name),
            Environment.UPPER: EnvironmentTable(name),
        }

    @property
    def qualified_name(self):
        return "%s.%s" % (self.db_name, self.name)

    def get_environment_table(self, environment: Environment) -> EnvironmentTable:
        return self.environments[environment]

    def get_table_definition(self, environment: Environment) -> list:
        return self.environments[environment].definition

    def set_table_definition(self, environment: Environment, definition: list):
        env_table = self.environments[environment]
        env_table.definition = list(definition)
        env_table.exists = len(env_table.definition) > 0

    def get_partition_definition(self, environment: Environment) -> list:
        return self.environments[environment].partitions

    def add_issue(self, issue: str):
        self.issues.append(issue)

    def add_action(self, description: str, action):
        self.actions.append(Pair(description, None if action is None else str(action)))

    def is_there_an_issue(self) -> bool:
        return len(self.issues) > 0

    def prop_add(self) -> list:
        props = self.environments[Environment.UPPER].add_properties
        return ["%s=%s" % (k, v) for k, v in props.items()]

    def reset_attempt(self):
        self.issues = []
        self.actions = []
        for env_table in self.environments.values():
            env_table.reset_attempt()

    def start_stage(self):
        """Begins a new attempt, dropping whatever an earlier one recorded."""
        self.reset_attempt()
        self.stage_start = time.time()
        self.phase_state = PhaseState.STARTED

    def finish_stage(self, phase_state: PhaseState):
        self.phase_state = phase_state
        if self.stage_start is not None:
            self.stage_duration = int((time.time() - self.stage_start) * 1000)

    def to_dict(self):
        return {
            "name": self.name,
            "dbName": self.db_name,
            "phaseState": self.phase_state.value,
            "stageStart": self.stage_start,
            "stageDuration": self.stage_duration,
            "issues": list(self.issues),
            "actions": [a.to_dict() for a in list(self.actions)],
            "environments": {env.value: env_table.to_dict()
                             for env, env_table in self.environments.items()},
        }

    @classmethod
    def from_dict(cls, d: dict):
        tbl_mirror = cls(d["dbName"], d["name"])
        tbl_mirror.phase_state = PhaseState(d.get("phaseState", PhaseState.INIT.value))
        tbl_mirror.stage_start = d.get("stageStart")
        tbl_mirror.stage_duration = d.get("stageDuration", 0)
        tbl_mirror.issues = list(d.get("issues") or [])
        tbl_mirror.actions = [Pair.from_dict(a) for a in d.get("actions") or []]
        for env_name, env_dict in (d.get("environments") or {}).items():
            tbl_mirror.environments[Environment(env_name)] = EnvironmentTable.from_dict(env_dict)
        return tbl_mirror
