# Copyright (c) 2018, The Jaeger Authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from typing import Any


def wildcard_match(pattern: str, text: str, case_insensitive: bool = True) -> bool:
    """
    Glob match where '*' matches any run of characters, including an empty
    one, and '?' matches exactly one character. Every other character
    matches itself.

    Runs in O(len(pattern) * len(text)) worst case without recursion, so
    long URLs cannot blow the stack.
    """
    if pattern is None or text is None:
        return False
    if pattern == '*':
        return True
    if case_insensitive:
        pattern = pattern.lower()
        text = text.lower()

    p = t = 0
    star = -1
    mark = 0
    while t < len(text):
        if p < len(pattern) and pattern[p] == '*':
            star = p
            mark = t
            p += 1
        elif p < len(pattern) and (pattern[p] == '?' or pattern[p] == text[t]):
            p += 1
            t += 1
        elif star >= 0:
            # backtrack: let the last star swallow one more character
            p = star + 1
            mark += 1
            t = mark
        else:
            return False

    while p < len(pattern) and pattern[p] == '*':
        p += 1
    return p == len(pattern)


def attribute_to_str(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)
