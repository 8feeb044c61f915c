from __future__ import annotations

import random
import re

from conftest import make_file

from tourgen.chunking import partition
from tourgen.prioritizer import PRIORITY_RULES, PriorityRule, prioritize, rank


def test_rank_follows_rule_table() -> None:
    assert rank("src/extension.ts") == 1
    assert rank("lib/server.py") == 1
    assert rank("cmd/tool/main.go") == 1
    assert rank("src/main.rs") == 2
    assert rank("src/app.vue") == 2
    assert rank("src/config.ts") == 3
    assert rank("src/generator/batch.ts") == 4
    assert rank("README.md") == 4
    assert rank("src/helpers.py") == 4


def test_rank_is_case_insensitive() -> None:
    assert rank("SRC/Index.TS") == 1
    assert rank("Src/Config.JS") == 3


def test_prioritize_breaks_ties_by_path() -> None:
    files = [
        make_file("src/zeta.ts"),
        make_file("docs/guide.md"),
        make_file("src/extension.ts"),
        make_file("app.py", language="python"),
        make_file("src/alpha.ts"),
        make_file("assets/logo.svg"),
    ]

    ordered = [record.path for record in prioritize(files)]

    assert ordered == [
        "app.py",
        "src/extension.ts",
        "src/alpha.ts",
        "src/zeta.ts",
        "assets/logo.svg",
        "docs/guide.md",
    ]


def test_prioritize_is_deterministic_across_input_orders() -> None:
    files = [make_file(f"pkg/module_{index:02d}.ts") for index in range(17)]
    files.append(make_file("src/index.ts"))
    files.append(make_file("src/util.ts"))

    baseline = [chunk.paths for chunk in partition(prioritize(files), 5)]
    shuffled = list(files)
    for seed in range(5):
        random.Random(seed).shuffle(shuffled)
        assert [chunk.paths for chunk in partition(prioritize(shuffled), 5)] == baseline


def test_custom_rule_table_extends_policy() -> None:
    rules = (PriorityRule(re.compile(r"^manage\.py$"), "name", 1, "django entry"),) + PRIORITY_RULES

    assert rank("manage.py") == 4
    assert rank("manage.py", rules) == 1
    ordered = prioritize([make_file("zzz.txt"), make_file("manage.py")], rules)
    assert ordered[0].path == "manage.py"
