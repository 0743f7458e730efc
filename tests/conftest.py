import pytest

from grabber.config import Settings


@pytest.fixture
def cfg(tmp_path) -> Settings:
    return Settings(
        grabber_data_dir=tmp_path / "data",
        grabber_clock_ms=0,
        grabber_quiescence_ms=0,
        grabber_detail_timeout_ms=1000,
        grabber_igtv_video_timeout_ms=100,
        grabber_navigation_timeout_s=0.1,
        grabber_defense_timeout_s=0.1,
        grabber_close_timeout_s=0.5,
    )
