"""
Tests for the project store: lookup, inference, filtered iteration, loading
and reloading.
"""

import json
import os
import threading
import unittest

import pytest

from compile_args_mcp import project as project_module
from compile_args_mcp.models import Entry
from compile_args_mcp.path_matcher import PathMatcher
from compile_args_mcp.project import Project, ProjectHolder, compute_guess_score
from tests.utils.test_helpers import (
    create_source_files,
    temp_compile_commands,
    temp_config_file,
    temp_flags_file,
)


def make_project(*filenames_and_args):
    return Project(entries=[Entry(filename=f, args=list(a)) for f, a in filenames_and_args])


def bump_mtime(path, seconds=10):
    stat = os.stat(path)
    os.utime(path, (stat.st_atime + seconds, stat.st_mtime + seconds))


class TestComputeGuessScore(unittest.TestCase):
    """Scoring of candidate files for a file without its own entry."""

    def test_identical_paths(self):
        path = "/a/b/c.cc"
        self.assertEqual(
            compute_guess_score(path, path),
            len(path) * project_module.MATCH_PREFIX_WEIGHT + len(path) * project_module.MATCH_POSTFIX_WEIGHT,
        )

    def test_directory_mismatch_is_penalized(self):
        self.assertGreater(
            compute_guess_score("/a/b/x.cc", "/a/b/y.cc"),
            compute_guess_score("/a/b/x.cc", "/a/b/c/y.cc"),
        )

    def test_shared_ending_breaks_ties(self):
        self.assertGreater(
            compute_guess_score("foo_unittest.cc", "bar_unittest.cc"),
            compute_guess_score("foo_unittest.cc", "bar_browsertest.cc"),
        )

    def test_empty_strings(self):
        self.assertEqual(compute_guess_score("", ""), 0)
        self.assertEqual(compute_guess_score("/a/b", ""), -200)


@pytest.mark.inference
class TestInference:

    def test_entry_inference(self):
        project = make_project(("/a/b/c/d/bar.cc", ["arg1"]), ("/a/b/c/baz.cc", ["arg2"]))

        # Same directory level, with parent directories known.
        assert project.find("/a/b/c/d/new.cc").args == ["arg1"]
        # Same directory level, with child directories known.
        assert project.find("/a/b/c/new.cc").args == ["arg2"]
        # New directory uses the closest parent directory.
        assert project.find("/a/b/c/new/new.cc").args == ["arg2"]

    def test_inference_prefers_same_file_endings(self):
        project = make_project(
            ("common/simple_browsertest.cc", ["arg1"]),
            ("common/simple_unittest.cc", ["arg2"]),
            ("common/a/simple_unittest.cc", ["arg3"]),
        )

        assert project.find("my_browsertest.cc").args == ["arg1"]
        assert project.find("my_unittest.cc").args == ["arg2"]
        assert project.find("common/my_browsertest.cc").args == ["arg1"]
        assert project.find("common/my_unittest.cc").args == ["arg2"]
        # The same directory wins over a matching ending.
        assert project.find("common/a/foo.cc").args == ["arg3"]

    def test_inferred_entry_is_marked(self):
        project = make_project(("/p/src/a.cc", ["-DA"]))

        entry = project.find("/p/src/a.h")

        assert entry.filename == "/p/src/a.h"
        assert entry.is_inferred is True

    def test_empty_project(self):
        entry = Project().find("/p/src/a.h")

        assert entry.filename == "/p/src/a.h"
        assert entry.args == []
        assert entry.is_inferred is True

    def test_ties_go_to_the_first_entry(self):
        project = make_project(("/p/x/a.cc", ["first"]), ("/p/y/a.cc", ["second"]))

        assert project.find("/p/z/a.cc").args == ["first"]

    def test_inferred_entries_are_cached(self, monkeypatch):
        project = make_project(("/p/src/a.cc", ["-DA"]), ("/p/lib/b.cc", ["-DB"]))
        first = project.find("/p/src/a.h")

        calls = []
        monkeypatch.setattr(project_module, "compute_guess_score", lambda a, b: calls.append(b) or 0)
        second = project.find("/p/src/a.h")

        assert calls == []
        assert second == first
        assert project.get_stats()["inferred_cache_size"] == 1

    def test_inferred_cache_evicts_least_recently_used(self, monkeypatch):
        monkeypatch.setattr(project_module, "INFERRED_CACHE_SIZE", 2)
        project = make_project(("/p/src/a.cc", ["-DA"]))
        project.find("/p/src/one.h")
        project.find("/p/src/two.h")
        project.find("/p/src/one.h")
        project.find("/p/src/three.h")

        calls = []
        monkeypatch.setattr(project_module, "compute_guess_score", lambda a, b: calls.append(a) or 0)
        project.find("/p/src/one.h")
        project.find("/p/src/three.h")
        assert calls == []

        assert project.find("/p/src/two.h").args == ["-DA"]
        assert calls == ["/p/src/two.h"]
        assert project.get_stats()["inferred_cache_size"] == 2

    def test_inferred_entries_are_not_stored(self):
        project = make_project(("/p/src/a.cc", ["-DA"]))

        project.find("/p/src/a.h")

        assert len(project.entries) == 1
        assert "/p/src/a.h" not in project.filename_index

    def test_concurrent_lookups(self):
        project = make_project(*[(f"/p/dir{i}/file.cc", [f"-DN{i}"]) for i in range(50)])
        results = []

        def worker(n):
            results.append(project.find(f"/p/dir{n}/file.h").args)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(results) == sorted([[f"-DN{n}"] for n in range(20)])


class TestExactLookup:

    def test_exact_match(self):
        project = make_project(("/p/a.cc", ["-DA"]), ("/p/b.cc", ["-DB"]))

        entry = project.find("/p/b.cc")

        assert entry == Entry(filename="/p/b.cc", args=["-DB"], is_inferred=False)

    def test_exact_match_does_not_score(self, monkeypatch):
        project = make_project(("/p/a.cc", ["-DA"]))

        def fail(a, b):
            raise AssertionError("scoring should not run for known files")

        monkeypatch.setattr(project_module, "compute_guess_score", fail)

        assert project.find("/p/a.cc").args == ["-DA"]

    def test_returned_entry_is_a_copy(self):
        project = make_project(("/p/a.cc", ["-DA"]))

        project.find("/p/a.cc").args.append("-DMUTATED")
        project.find("/p/a.h").args.append("-DMUTATED")

        assert project.find("/p/a.cc").args == ["-DA"]
        assert project.find("/p/a.h").args == ["-DA"]

    def test_duplicate_filenames_last_wins(self, diagnostic_output):
        project = make_project(("/p/a.cc", ["-DFIRST"]), ("/p/a.cc", ["-DSECOND"]))

        assert project.find("/p/a.cc").args == ["-DSECOND"]
        assert len(project.entries) == 2
        assert "Duplicate entry for /p/a.cc" in diagnostic_output.getvalue()

    def test_include_directories_end_in_slash_and_are_unique(self):
        project = Project(
            quote_include_directories={"/p/gen", "/p/gen/"},
            angle_include_directories=["/usr/include", "/p/include/"],
        )

        assert project.quote_include_directories == ["/p/gen/"]
        assert project.angle_include_directories == ["/p/include/", "/usr/include/"]


class TestForEachFiltered:

    def test_entries_in_order_with_index(self):
        project = make_project(("/p/a.cc", []), ("/p/b.cc", []), ("/p/c.cc", []))
        visited = []

        project.for_each_filtered(PathMatcher(), lambda i, e: visited.append((i, e.filename)))

        assert visited == [(0, "/p/a.cc"), (1, "/p/b.cc"), (2, "/p/c.cc")]

    def test_skipped_entries_are_logged(self, diagnostic_output):
        project = make_project(("/p/a.cc", []), ("/p/third_party/b.cc", []), ("/p/c.cc", []))
        visited = []

        project.for_each_filtered(
            PathMatcher(blacklist=["*/third_party/*"]),
            lambda i, e: visited.append(i),
            log_skipped=True,
        )

        assert visited == [0, 2]
        assert (
            "[2/3]: Failed blacklist pattern '*/third_party/*'; skipping /p/third_party/b.cc"
            in diagnostic_output.getvalue()
        )

    def test_skipped_entries_are_quiet_by_default(self, diagnostic_output):
        project = make_project(("/p/third_party/b.cc", []))

        project.for_each_filtered(PathMatcher(blacklist=["*/third_party/*"]), lambda i, e: None)

        assert "skipping" not in diagnostic_output.getvalue()

    def test_whitelist_overrides_blacklist(self):
        project = make_project(("/p/third_party/keep/x.cc", []), ("/p/third_party/y.cc", []))
        visited = []

        project.for_each_filtered(
            PathMatcher(whitelist=["*/keep/*"], blacklist=["*/third_party/*"]),
            lambda i, e: visited.append(e.filename),
        )

        assert visited == ["/p/third_party/keep/x.cc"]


@pytest.mark.integration
class TestProjectLoad:

    def test_load_from_compile_commands(self, temp_project_dir):
        root = str(temp_project_dir)
        temp_compile_commands(
            temp_project_dir,
            [
                {"file": "src/a.cc", "command": "clang++ -MMD -Iinclude -iquote gen -c src/a.cc"},
                {"file": "src/b.c", "arguments": ["gcc", "-isystem", "/usr/include", "-c", "src/b.c"]},
            ],
        )

        project = Project.load(root)

        assert project.loaded_from_compile_commands is True
        assert project.project_directory == root + "/"
        assert project.find(root + "/src/a.cc").args == [
            "-I" + root + "/include", "-iquote", root + "/gen", "-c", "src/a.cc", "-xc++", "-std=c++11",
        ]
        assert project.find(root + "/src/b.c").args == [
            "-isystem", "/usr/include", "-c", "src/b.c", "-xc", "-std=c11",
        ]
        assert project.quote_include_directories == [root + "/gen/"]
        assert project.angle_include_directories == sorted([root + "/include/", "/usr/include/"])

    def test_invalid_database_falls_back_to_listing(self, temp_project_dir):
        (temp_project_dir / "compile_commands.json").write_text("{ not json")
        create_source_files(temp_project_dir, ["src/a.cc"])
        temp_flags_file(temp_project_dir, ["-DLISTED"])

        project = Project.load(str(temp_project_dir))

        assert project.loaded_from_compile_commands is False
        assert [e.filename for e in project.entries] == [str(temp_project_dir) + "/src/a.cc"]
        assert project.entries[0].args == ["-DLISTED", "-xc++", "-std=c++11"]

    def test_malformed_entry_falls_back_to_listing(self, temp_project_dir):
        temp_compile_commands(temp_project_dir, [{"file": "src/a.cc"}])
        create_source_files(temp_project_dir, ["src/a.cc", "src/b.cc"])

        project = Project.load(str(temp_project_dir))

        assert project.loaded_from_compile_commands is False
        assert len(project.entries) == 2

    def test_missing_database_uses_listing(self, temp_project_dir):
        create_source_files(temp_project_dir, ["src/a.cc"])

        project = Project.load(str(temp_project_dir))

        assert project.loaded_from_compile_commands is False
        assert len(project.entries) == 1

    def test_extra_flags_from_config_and_caller(self, temp_project_dir):
        temp_compile_commands(temp_project_dir, [{"file": "a.cc", "command": "clang++ -c a.cc"}])
        temp_config_file(temp_project_dir, {"extra_flags": ["-DFROM_CONFIG"]})

        project = Project.load(str(temp_project_dir), extra_flags=["-DFROM_CALLER"])

        assert project.entries[0].args == ["-c", "a.cc", "-DFROM_CONFIG", "-DFROM_CALLER", "-xc++", "-std=c++11"]

    def test_custom_compile_commands_location(self, temp_project_dir):
        build_dir = temp_project_dir / "out"
        build_dir.mkdir()
        (build_dir / "compile_commands.json").write_text(
            json.dumps([{"directory": str(build_dir), "file": "../src/a.cc", "command": "cc -c ../src/a.cc"}])
        )
        temp_config_file(temp_project_dir, {"compile_commands_path": "out/compile_commands.json"})

        project = Project.load(str(temp_project_dir))

        assert project.loaded_from_compile_commands is True
        assert project.entries[0].filename == str(temp_project_dir) + "/src/a.cc"

    def test_custom_cleanup_rules_from_config(self, temp_project_dir):
        (temp_project_dir / "rules.json").write_text(
            json.dumps({"rules": [{"id": "site", "type": "exact_match", "patterns": ["-DDROP"]}]})
        )
        temp_config_file(temp_project_dir, {"cleanup_rules_file": "rules.json"})
        temp_compile_commands(temp_project_dir, [{"file": "a.cc", "command": "clang++ -DDROP -DKEEP a.cc"}])

        project = Project.load(str(temp_project_dir))

        assert project.entries[0].args == ["-DKEEP", "a.cc", "-xc++", "-std=c++11"]

    def test_load_logs_summary(self, temp_project_dir, diagnostic_output):
        temp_compile_commands(temp_project_dir, [{"file": "a.cc", "command": "clang++ -Iinc a.cc"}])

        Project.load(str(temp_project_dir))

        output = diagnostic_output.getvalue()
        assert "Finished loading project (used compile_commands=True); got 1 entries" in output
        assert f"angle_include_dir: {temp_project_dir}/inc/" in output


@pytest.mark.integration
class TestProjectHolder:

    def test_initial_load(self, temp_project_dir):
        temp_compile_commands(temp_project_dir, [{"file": "a.cc", "command": "clang++ a.cc"}])

        holder = ProjectHolder(str(temp_project_dir))

        assert holder.project.loaded_from_compile_commands is True
        assert holder.config is not None
        assert holder.refresh_if_needed() is False

    def test_refresh_after_database_change(self, temp_project_dir):
        path = temp_compile_commands(temp_project_dir, [{"file": "a.cc", "command": "clang++ a.cc"}])
        holder = ProjectHolder(str(temp_project_dir))
        old_project = holder.project

        temp_compile_commands(
            temp_project_dir,
            [{"file": "a.cc", "command": "clang++ a.cc"}, {"file": "b.cc", "command": "clang++ b.cc"}],
        )
        bump_mtime(path)

        assert holder.refresh_if_needed() is True
        assert len(holder.project.entries) == 2
        # Readers holding the previous store keep a consistent view.
        assert len(old_project.entries) == 1

    def test_refresh_after_database_appears(self, temp_project_dir):
        create_source_files(temp_project_dir, ["src/a.cc"])
        holder = ProjectHolder(str(temp_project_dir))
        assert holder.project.loaded_from_compile_commands is False

        temp_compile_commands(temp_project_dir, [{"file": "src/a.cc", "command": "clang++ -DDB src/a.cc"}])

        assert holder.refresh_if_needed() is True
        assert holder.project.loaded_from_compile_commands is True

    def test_refresh_after_database_removed(self, temp_project_dir):
        path = temp_compile_commands(temp_project_dir, [{"file": "a.cc", "command": "clang++ a.cc"}])
        holder = ProjectHolder(str(temp_project_dir))

        path.unlink()

        assert holder.refresh_if_needed() is True
        assert holder.project.loaded_from_compile_commands is False

    def test_forced_reload_picks_up_flags_file(self, temp_project_dir):
        create_source_files(temp_project_dir, ["src/a.cc"])
        holder = ProjectHolder(str(temp_project_dir))
        assert holder.project.entries[0].args == ["-xc++", "-std=c++11"]

        temp_flags_file(temp_project_dir, ["-DNEW"])
        holder.reload()

        assert holder.project.entries[0].args == ["-DNEW", "-xc++", "-std=c++11"]
