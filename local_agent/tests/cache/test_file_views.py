# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from local_agent.src.utils.file_views import build_tree, list_files_recursive


def make_project(root):
    (root / "src" / "pkg").mkdir(parents=True)
    (root / "src" / "pkg" / "deep.py").write_text("")
    (root / "src" / "main.py").write_text("")
    (root / "README.md").write_text("")
    (root / ".env").write_text("")
    (root / ".env.example").write_text("")
    (root / ".vscode").mkdir()
    (root / ".vscode" / "settings.json").write_text("{}")
    (root / "dist").mkdir()
    (root / "dist" / "bundle.js").write_text("")


def test_tree_lists_directories_first_and_hides_noise(workspace):
    make_project(workspace)
    assert build_tree(workspace, max_depth=3) == "\n".join(
        [
            "├── src/",
            "│   ├── pkg/",
            "│   │   └── deep.py",
            "│   └── main.py",
            "├── .env.example",
            "└── README.md",
        ]
    )


def test_tree_respects_depth(workspace):
    make_project(workspace)
    assert build_tree(workspace, max_depth=1) == "├── src/\n├── .env.example\n└── README.md"


def test_recursive_listing_skips_hidden_directories(workspace):
    make_project(workspace)
    assert list_files_recursive(workspace) == [
        ".env",
        ".env.example",
        "README.md",
        "dist/bundle.js",
        "src/main.py",
        "src/pkg/deep.py",
    ]
