from __future__ import annotations

import argparse
import importlib
from pathlib import Path

from voicechat.voice_client import cli
from voicechat.voice_client.playback import CommandPlayer, FilePlayer


def make_args(**overrides) -> argparse.Namespace:
    values = {"mute": False, "save_dir": None, "player": "ffplay -nodisp -"}
    values.update(overrides)
    return argparse.Namespace(**values)


def test_console_entry_point_resolves() -> None:
    module = importlib.import_module("voicechat.voice_client.cli")

    assert callable(module.main)


def test_build_player_defaults_to_command() -> None:
    player = cli._build_player(make_args())

    assert isinstance(player, CommandPlayer)


def test_build_player_prefers_save_dir(tmp_path: Path) -> None:
    player = cli._build_player(make_args(save_dir=str(tmp_path)))

    assert isinstance(player, FilePlayer)


def test_build_player_muted() -> None:
    assert cli._build_player(make_args(mute=True, save_dir="ignored")) is None
