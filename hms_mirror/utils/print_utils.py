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

import sys


def print_red(s):
    sys.stderr.write('\033[31m' + s + '\033[0m')


def print_yellow(s):
    sys.stdout.write('\033[33m' + s + '\033[0m')


def print_green(s):
    sys.stdout.write('\033[32m' + s + '\033[0m')
