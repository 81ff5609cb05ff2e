import importlib.util
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parent.parent / 'scripts' / 'set_env.py'


@pytest.fixture
def set_env():
    spec = importlib.util.spec_from_file_location('set_env', SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_updates_in_place_and_keeps_comments(set_env, tmp_path):
    env_path = tmp_path / '.env'
    env_path.write_text(
        '# Urban AI services\n'
        'URBANAI_API_URL=https://old.example\n'
        '\n'
        '# URBANAI_ANALYSIS_API_URL=http://commented.out\n'
        'LOG_LEVEL=DEBUG\n',
        encoding='utf-8'
    )

    set_env.set_in_env({'URBANAI_API_URL': 'https://api.decotwo.com',
                        'URBANAI_ANALYSIS_API_URL': 'http://localhost:8080'}, env_path=env_path)

    assert env_path.read_text(encoding='utf-8') == (
        '# Urban AI services\n'
        'URBANAI_API_URL=https://api.decotwo.com\n'
        '\n'
        '# URBANAI_ANALYSIS_API_URL=http://commented.out\n'
        'LOG_LEVEL=DEBUG\n'
        'URBANAI_ANALYSIS_API_URL=http://localhost:8080\n'
    )


def test_creates_missing_file(set_env, tmp_path):
    env_path = tmp_path / '.env'
    set_env.set_in_env({'URBANAI_MAP_API_URL': 'https://karte.example/ä'}, env_path=env_path)
    assert env_path.read_text(encoding='utf-8') == 'URBANAI_MAP_API_URL=https://karte.example/ä\n'
