import pytest

import run
from chip8 import StackUnderflowError
from quirks import SUPERCHIP


def scripted(*answers):
    answers = iter(answers)
    return lambda prompt: next(answers)


class TestArguments:
    def test_defaults(self):
        args = run.build_parser().parse_args([])
        config = run.config_from_args(args)
        assert args.rom is None
        assert config.clock_rate == 700
        assert config.quirks == "chip8"
        assert config.fg_color == (255, 255, 255)
        assert config.bg_color == (0, 0, 0)

    def test_options(self):
        args = run.build_parser().parse_args([
            "game.ch8", "--rate", "1000", "--quirks", "schip", "--scale", "8",
            "--fg", "#00FF00", "--volume", "0.5", "--tone", "220",
        ])
        config = run.config_from_args(args)
        assert args.rom == "game.ch8"
        assert config.clock_rate == 1000
        assert config.quirk_profile() is SUPERCHIP
        assert config.scale == 8
        assert config.fg_color == (0, 255, 0)
        assert config.audio.volume == 0.5
        assert config.audio.tone_hz == 220

    def test_quirk_switches(self):
        args = run.build_parser().parse_args(["--quirks", "schip", "--shift-quirk", "on", "--logic-quirk", "off"])
        profile = run.config_from_args(args).quirk_profile()
        assert profile.shift_uses_vy
        assert not profile.logic_resets_vf
        assert not profile.load_store_increments_i

    def test_bad_values_exit(self):
        with pytest.raises(SystemExit):
            run.main(["--rate", "0"])
        with pytest.raises(SystemExit):
            run.main(["--quirks", "xochip"])

    def test_unreadable_rom_is_reported(self, tmp_path, monkeypatch):
        started = []
        monkeypatch.setattr("frontend.Emulator.run", lambda self, caption="": started.append(caption))
        assert run.main([str(tmp_path / "missing.ch8")]) == 1
        assert started == []

    def test_rom_is_started(self, tmp_path, monkeypatch):
        started = []
        monkeypatch.setattr("frontend.Emulator.run", lambda self, caption="": started.append(caption))
        rom = tmp_path / "pong.ch8"
        rom.write_bytes(b"\x12\x00")
        assert run.main([str(rom)]) == 0
        assert started == ["CHIP-8 - pong.ch8"]

    def test_machine_fault_exits_non_zero(self, tmp_path, monkeypatch):
        def crash(self, caption=""):
            self.fault = StackUnderflowError("Return with an empty call stack.")

        monkeypatch.setattr("frontend.Emulator.run", crash)
        rom = tmp_path / "broken.ch8"
        rom.write_bytes(b"\x00\xEE")
        assert run.main([str(rom)]) == 1


class TestGameMenu:
    @pytest.fixture
    def games(self, tmp_path):
        for i in range(9):
            (tmp_path / f"game{i}.ch8").write_bytes(b"\x12\x00")
        return tmp_path

    def test_exit(self, games):
        assert run.choose_game(games, read=scripted("0")) is None

    def test_pick_on_first_page(self, games):
        assert run.choose_game(games, read=scripted("3")).name == "game2.ch8"

    def test_paging(self, games, capsys):
        choice = run.choose_game(games, read=scripted("9", "8", "1"))
        assert choice.name == "game0.ch8"
        out = capsys.readouterr().out
        assert "Page 2/2" in out

    def test_out_of_range_choice_on_last_page(self, games, capsys):
        choice = run.choose_game(games, read=scripted("9", "5", "1"))
        assert choice.name == "game7.ch8"
        assert "Invalid choice" in capsys.readouterr().out

    def test_empty_directory(self, tmp_path, capsys):
        assert run.choose_game(tmp_path, read=scripted()) is None
        assert "No games found" in capsys.readouterr().out
