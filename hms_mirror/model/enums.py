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

from enum import Enum


class Environment(Enum):
    LOWER = "LOWER"
    UPPER = "UPPER"


class PhaseState(Enum):
    INIT = "INIT"
    # claimed by a task that has not finished yet, re-scheduled on retry
    STARTED = "STARTED"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"
    RETRY_SKIPPED_PAST_SUCCESS = "RETRY_SKIPPED_PAST_SUCCESS"


class Stage(Enum):
    METADATA = "METADATA"
    STORAGE = "STORAGE"


class MetadataStrategy(Enum):
    DIRECT = "DIRECT"
    TRANSITION = "TRANSITION"


class StorageStrategy(Enum):
    SQL = "SQL"
    EXPORT_IMPORT = "EXPORT_IMPORT"
    HYBRID = "HYBRID"
    DISTCP = "DISTCP"


class CreateStrategy(Enum):
    NOTHING = "NOTHING"
    CREATE = "CREATE"
    DROP = "DROP"
    REPLACE = "REPLACE"
    LEAVE = "LEAVE"


class ReplicationStrategy(Enum):
    SYNCHRONIZE = "SYNCHRONIZE"
    OVERWRITE = "OVERWRITE"


def parse_enum(enum_cls, value, option_name):
    """Case-insensitive lookup of an enum member by name.

    Raises ValueError naming the option and the accepted values.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls[str(value).strip().upper()]
    except KeyError:
        raise ValueError("Invalid %s '%s', available values are %s" % (
            option_name, value, "|".join(m.name for m in enum_cls)))
