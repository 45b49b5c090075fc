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

from hms_mirror.feature.bad_text_file_def_feature import BadTextFileDefFeature

# Order matters: each feature sees the lines already rewritten by the ones before it.
FEATURES = (
    BadTextFileDefFeature,
)


def apply_features(schema: list, logger=None) -> list:
    """Runs every applicable feature once, in order, rewriting schema in place.

    Returns the names of the features that changed the schema.
    """
    logger = logger or logging.getLogger("feature")
    applied = []
    for feature_cls in FEATURES:
        feature = feature_cls(logger)
        if feature.fix_schema(schema):
            logger.debug("Feature %s applied" % feature.name)
            applied.append(feature.name)
    return applied
