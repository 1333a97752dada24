"""Pytest configuration and shared fixtures"""
import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

# Modules live at the repository root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mapper import Color
from light_controller import LightTarget, LightUpdated
from sync_loop import SyncLoop


def make_loop(artworks, color=Color(200, 40, 10), result=None):
    """Build a SyncLoop whose collaborators are mocks fed with ``artworks``."""
    artwork_source = MagicMock()
    artwork_source.fetch_current_artwork = AsyncMock(side_effect=list(artworks))

    sampler = MagicMock()
    sampler.sample_average_color = AsyncMock(return_value=color)

    session = MagicMock()
    session.get_session = AsyncMock(return_value=MagicMock(name="bridge"))

    controller = MagicMock()
    controller.set_light_color = AsyncMock(
        return_value=result or LightUpdated(LightTarget(2, "Office Monitor"), (0.6, 0.3))
    )

    return SyncLoop(artwork_source, sampler, session, controller, "Office Monitor")


@pytest.fixture
def loop_factory():
    return make_loop
