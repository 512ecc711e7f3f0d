"""Unit tests for MixPointDetectionTask.

Structure and mix points are detected on hand-built spectral series and
energy curves, so every expected boundary is known exactly:
    - intro / outro / fallback outro / main section
    - breakdowns, buildups, drops, instrumental stretches
    - optimal in / out point selection
    - transition windows
    - point-to-point comparison
    - degraded inputs (no spectral series, no energy curve)
"""

import numpy as np
import pytest

DT = 512 / 44100


# =============================================================================
# STRUCTURE TESTS
# =============================================================================

@pytest.mark.unit
class TestStructure:
    """Intro, outro and main section detection."""

    def test_intro_ends_at_first_energy_jump(self, make_series, make_curve):
        """
        ЧТО ПРОВЕРЯЕМ:
            Intro ends at the first frame where energy jumps above 0.6
            after more than 10 low-energy frames
        """
        from mixlab.modules.analysis.tasks import MixPointDetectionTask, MixPointType

        energy = np.full(2000, 0.8)
        energy[:100] = 0.2

        result = MixPointDetectionTask().execute_with_data(
            "t", 2000 * DT, make_series(2000), make_curve(energy),
        )
        structure = result.analysis.structure

        assert structure.intro is not None
        assert structure.intro.start == 0.0
        assert structure.intro.end == pytest.approx(100 * DT)
        assert structure.intro.confidence == pytest.approx(0.8)
        assert structure.outro is None
        assert structure.main_section.start == pytest.approx(100 * DT)
        assert structure.main_section.end == pytest.approx(2000 * DT)

        points = result.analysis.mix_points
        assert [p.type for p in points] == [MixPointType.INTRO]
        assert points[0].transition_suitability == pytest.approx(0.9 + 0.1 * 0.2)
        assert result.analysis.optimal_in_points == points

    def test_outro_starts_at_first_quiet_decay(self, make_series, make_curve):
        """
        ЧТО ПРОВЕРЯЕМ:
            Outro starts at the first frame whose energy is below 0.5 and
            falls by more than 30% within 10 frames
        """
        from mixlab.modules.analysis.tasks import MixPointDetectionTask, MixPointType

        energy = np.full(2000, 0.45)
        energy[1800:] = 0.1

        result = MixPointDetectionTask().execute_with_data(
            "t", 2000 * DT, make_series(2000), make_curve(energy),
        )
        structure = result.analysis.structure

        assert structure.intro is None
        assert structure.outro.start == pytest.approx(1790 * DT)
        assert structure.outro.end == pytest.approx(2000 * DT)
        # 10 decaying frames: 0.7 + 10 * 0.05 capped at 1
        assert structure.outro.confidence == pytest.approx(1.0)

        outro = result.analysis.points_of_type(MixPointType.OUTRO)
        assert len(outro) == 1
        assert result.analysis.optimal_out_points == outro

    def test_long_track_without_decay_gets_fallback_outro(self, make_series, make_curve):
        """Tracks over 90 s without a decay get the last 30 s as outro."""
        from mixlab.modules.analysis.tasks import MixPointDetectionTask

        n = 8000
        duration = n * DT
        result = MixPointDetectionTask().execute_with_data(
            "t", duration, make_series(n), make_curve(np.full(n, 0.5)),
        )
        outro = result.analysis.structure.outro

        assert duration > 90
        assert outro.start == pytest.approx(duration - 30)
        assert outro.end == pytest.approx(duration)
        assert outro.confidence == 0.5

    def test_short_flat_track_has_no_sections(self, make_series, make_curve):
        from mixlab.modules.analysis.tasks import MixPointDetectionTask

        result = MixPointDetectionTask().execute_with_data(
            "t", 1000 * DT, make_series(1000), make_curve(np.full(1000, 0.5)),
        )
        structure = result.analysis.structure

        assert structure.intro is None
        assert structure.outro is None
        assert structure.breakdowns == []
        assert structure.drops == []
        assert structure.main_section.start == 0.0


# =============================================================================
# BREAKDOWN / DROP TESTS
# =============================================================================

@pytest.fixture
def breakdown_track(make_series, make_curve):
    """
    3000 frames: full bass at 0.8 energy, a 1000-frame breakdown
    (bass 0.1, energy 0.45) from frame 1000, then back to full.
    """
    bass = np.ones(3000)
    bass[1000:2000] = 0.1
    energy = np.full(3000, 0.8)
    energy[1000:2000] = 0.45
    return make_series(3000, bass=bass), make_curve(energy)


@pytest.mark.unit
class TestBreakdownsAndDrops:
    """Breakdown, buildup and drop detection."""

    def test_breakdown_bounds_and_intensity(self, breakdown_track):
        from mixlab.modules.analysis.tasks import MixPointDetectionTask

        series, curve = breakdown_track
        result = MixPointDetectionTask().execute_with_data("t", 3000 * DT, series, curve)
        breakdowns = result.analysis.structure.breakdowns

        assert len(breakdowns) == 1
        assert breakdowns[0].start == pytest.approx(1000 * DT)
        assert breakdowns[0].end == pytest.approx(2000 * DT)
        assert breakdowns[0].intensity == pytest.approx(0.55)

    def test_single_drop_after_breakdown(self, breakdown_track):
        """
        ЧТО ПРОВЕРЯЕМ:
            Bass and energy jump 10 frames after the breakdown is one drop;
            the following frames within 8 s are de-duplicated
        """
        from mixlab.modules.analysis.tasks import MixPointDetectionTask

        series, curve = breakdown_track
        result = MixPointDetectionTask().execute_with_data("t", 3000 * DT, series, curve)
        drops = result.analysis.structure.drops

        assert len(drops) == 1
        assert drops[0].timestamp == pytest.approx(2000 * DT)
        assert drops[0].impact == pytest.approx(1.0)

    def test_mix_points_ordered_by_time(self, breakdown_track):
        """Breakdown start, buildup 8 s before its end, then the drop."""
        from mixlab.modules.analysis.tasks import MixPointDetectionTask, MixPointType

        series, curve = breakdown_track
        result = MixPointDetectionTask().execute_with_data("t", 3000 * DT, series, curve)
        points = result.analysis.mix_points

        assert [p.type for p in points] == [
            MixPointType.BREAKDOWN, MixPointType.BUILDUP, MixPointType.DROP,
        ]
        assert points[1].timestamp == pytest.approx(2000 * DT - 8.0)
        timestamps = [p.timestamp for p in points]
        assert timestamps == sorted(timestamps)

    def test_point_scores_inside_breakdown(self, breakdown_track):
        from mixlab.modules.analysis.tasks import MixPointDetectionTask, MixPointType

        series, curve = breakdown_track
        result = MixPointDetectionTask().execute_with_data("t", 3000 * DT, series, curve)
        breakdown = result.analysis.points_of_type(MixPointType.BREAKDOWN)[0]
        buildup = result.analysis.points_of_type(MixPointType.BUILDUP)[0]

        assert breakdown.energy == pytest.approx(0.45)
        assert breakdown.harmonic_stability == pytest.approx(1.0)
        assert breakdown.rhythmic_stability == pytest.approx(1.0)
        assert breakdown.transition_suitability == pytest.approx(0.6 + 0.3 * 0.55 + 0.1)

        # Buildup sits well inside the low-bass region
        assert buildup.characteristics.has_kick is False
        assert buildup.characteristics.has_bass is False
        assert buildup.characteristics.has_vocals is False
        assert buildup.transition_suitability == pytest.approx(0.5 + 0.3 + 0.2 * 0.45)

    def test_breakdown_is_optimal_in_and_out(self, breakdown_track):
        from mixlab.modules.analysis.tasks import MixPointDetectionTask, MixPointType

        series, curve = breakdown_track
        analysis = MixPointDetectionTask().execute_with_data("t", 3000 * DT, series, curve).analysis

        assert [p.type for p in analysis.optimal_in_points] == [MixPointType.BREAKDOWN]
        assert [p.type for p in analysis.optimal_out_points] == [MixPointType.BREAKDOWN]

    def test_transition_window_between_buildup_and_drop(self, breakdown_track):
        """
        ЧТО ПРОВЕРЯЕМ:
            Only adjacent points at least 16 beats at 128 BPM (7.5 s) apart
            form a window; stable chroma on both sides makes it harmonic
        """
        from mixlab.modules.analysis.tasks import MixPointDetectionTask, WindowType

        series, curve = breakdown_track
        windows = MixPointDetectionTask().execute_with_data(
            "t", 3000 * DT, series, curve,
        ).analysis.transition_windows

        assert len(windows) == 1
        window = windows[0]
        assert window.duration == pytest.approx(8.0)
        assert window.type is WindowType.HARMONIC
        assert window.compatibility.energy == pytest.approx(0.65)
        assert window.compatibility.mood == 1.0
        assert window.confidence == pytest.approx(0.3 + 0.3 + 0.25 * 0.65 + 0.15)


# =============================================================================
# INSTRUMENTAL TESTS
# =============================================================================

@pytest.mark.unit
class TestInstrumentals:

    @pytest.fixture
    def analysis(self, make_series, make_curve):
        from mixlab.modules.analysis.tasks import MixPointDetectionTask

        series = make_series(1000, mid=np.full(1000, 0.1), high_mid=np.full(1000, 0.1))
        return MixPointDetectionTask().execute_with_data(
            "t", 1000 * DT, series, make_curve(np.full(1000, 0.8)),
        ).analysis

    def test_every_quiet_window_is_an_instrumental(self, analysis):
        from mixlab.modules.analysis.tasks import MixPointType

        points = analysis.points_of_type(MixPointType.INSTRUMENTAL)
        # Windows of 100 frames every 50 frames
        assert len(points) == 18
        assert points[0].timestamp == 0.0
        assert points[-1].timestamp == pytest.approx(850 * DT)
        assert all(p.confidence == pytest.approx(0.7) for p in points)

    def test_busy_instrumental_suitability(self, analysis):
        """bass + mid + presence > 2 is complex; complexity drops the 0.2 term."""
        from mixlab.modules.analysis.tasks import Complexity

        point = analysis.mix_points[0]
        assert point.characteristics.complexity is Complexity.COMPLEX
        assert point.transition_suitability == pytest.approx(0.8)

    def test_optimal_points_pick_earliest_and_latest(self, analysis):
        assert [p.timestamp for p in analysis.optimal_in_points] == pytest.approx([0.0, 50 * DT])
        assert [p.timestamp for p in analysis.optimal_out_points] == pytest.approx([850 * DT, 800 * DT])

    def test_close_points_form_no_windows(self, analysis):
        assert analysis.transition_windows == []


# =============================================================================
# DEGRADED INPUT TESTS
# =============================================================================

@pytest.mark.unit
class TestDegradedInputs:

    def test_no_inputs_gives_empty_analysis(self):
        from mixlab.modules.analysis.tasks import MixPointDetectionTask

        result = MixPointDetectionTask().execute_with_data("t", 120.0, None, None)
        analysis = result.analysis

        assert result.success
        assert analysis.duration == 120.0
        assert analysis.mix_points == []
        assert analysis.optimal_in_points == []
        assert analysis.optimal_out_points == []
        assert analysis.transition_windows == []
        assert analysis.structure.intro is None
        assert analysis.structure.outro is None

    def test_missing_curve_uses_neutral_energy(self, make_series):
        """
        ЧТО ПРОВЕРЯЕМ:
            Without an energy curve no timeline sections or breakdowns are
            found, instrumentals still are and carry energy 0.5
        """
        from mixlab.modules.analysis.tasks import MixPointDetectionTask, MixPointType

        series = make_series(400, mid=np.full(400, 0.1), high_mid=np.full(400, 0.1))
        analysis = MixPointDetectionTask().execute_with_data("t", 400 * DT, series, None).analysis

        assert analysis.structure.breakdowns == []
        assert analysis.structure.drops == []
        points = analysis.points_of_type(MixPointType.INSTRUMENTAL)
        assert len(points) == 6
        assert all(p.energy == 0.5 for p in points)

    def test_empty_curve_reads_as_half_energy(self, make_series):
        from mixlab.modules.analysis.tasks import MixPointDetectionTask, EnergyCurve

        series = make_series(400, mid=np.full(400, 0.1), high_mid=np.full(400, 0.1))
        analysis = MixPointDetectionTask().execute_with_data(
            "t", 400 * DT, series, EnergyCurve.empty(),
        ).analysis

        assert analysis.mix_points
        assert all(p.energy == 0.5 for p in analysis.mix_points)

    def test_mood_label_is_copied_to_points(self, make_series, make_curve):
        from mixlab.modules.analysis.tasks import MixPointDetectionTask, MoodProfile, MoodType

        series = make_series(400, mid=np.full(400, 0.1), high_mid=np.full(400, 0.1))
        mood = MoodProfile(primary_mood=MoodType.EUPHORIC)
        analysis = MixPointDetectionTask().execute_with_data(
            "t", 400 * DT, series, make_curve(np.full(400, 0.8)), mood,
        ).analysis

        assert {p.characteristics.mood for p in analysis.mix_points} == {"euphoric"}

    def test_execute_reads_context_metadata(self, make_series, make_curve):
        from mixlab.modules.analysis.tasks import (
            MixPointDetectionTask, MoodAnalysisResult, create_audio_context,
        )

        series = make_series(3000)
        mood = MoodAnalysisResult(energy_curve=make_curve(np.full(3000, 0.5)))
        context = create_audio_context(
            np.zeros(3000 * 512, dtype=np.float32), 44100, track_id="ctx",
            spectral=series, mood=mood,
        )

        result = MixPointDetectionTask().execute(context)

        assert result.success
        assert result.analysis.track_id == "ctx"
        assert result.analysis.duration == pytest.approx(3000 * DT)


# =============================================================================
# POINT COMPARISON TESTS
# =============================================================================

@pytest.mark.unit
class TestComparePoints:

    def test_outro_into_intro_is_extended_classic_blend(self, make_point):
        """
        ЧТО ПРОВЕРЯЕМ:
            Outro -> intro with overall > 0.8 is a classic blend stretched
            to 48 beats, with extended-blend and clean-mix techniques
        """
        from mixlab.modules.analysis.tasks import compare_points

        comparison = compare_points(
            make_point("outro", energy=0.3, harmonic=0.9, rhythmic=0.9),
            make_point("intro", energy=0.3, harmonic=0.9, rhythmic=0.9),
        )

        assert comparison.transition_type == 'classic_blend'
        assert comparison.compatibility.overall == pytest.approx(0.94)
        assert comparison.duration_beats == 48
        assert 'Extended blend possible' in comparison.techniques
        assert 'Full frequency blend possible' in comparison.techniques
        assert 'Clean mix with minimal EQ needed' in comparison.techniques
        assert comparison.warnings == []

    def test_unstable_double_drop_collects_warnings(self, make_point):
        from mixlab.modules.analysis.tasks import compare_points

        comparison = compare_points(
            make_point("drop", energy=0.9, harmonic=0.2, rhythmic=0.3, complexity="complex"),
            make_point("drop", energy=0.9, harmonic=0.2, rhythmic=0.3, complexity="complex"),
        )

        assert comparison.transition_type == 'drop_mix'
        # overall 0.55: base length kept
        assert comparison.duration_beats == 8
        assert comparison.warnings == [
            'Key clash likely - use EQ aggressively',
            'Rhythm mismatch - consider beat matching carefully',
            'Double drop - timing is critical',
            'Both tracks are busy - careful EQ needed',
        ]
        assert 'Clean mix with minimal EQ needed' not in comparison.techniques

    def test_breakdown_takes_priority_over_energy(self, make_point):
        from mixlab.modules.analysis.tasks import compare_points

        comparison = compare_points(
            make_point("breakdown", energy=0.1),
            make_point("drop", energy=0.9),
        )
        assert comparison.transition_type == 'breakdown_swap'

    def test_energy_gap_shortens_to_cut(self, make_point):
        """
        ЧТО ПРОВЕРЯЕМ:
            Energy score below 0.5 is an energy cut; overall below 0.5
            halves its 4 beats
        """
        from mixlab.modules.analysis.tasks import compare_points

        comparison = compare_points(
            make_point("instrumental", energy=0.95, harmonic=0.1, rhythmic=0.1, mood="dark"),
            make_point("instrumental", energy=0.05, harmonic=0.1, rhythmic=0.1, mood="happy"),
        )

        assert comparison.transition_type == 'energy_cut'
        assert comparison.compatibility.mood == 0.5
        assert comparison.duration_beats == 2
        assert 'Large energy gap - may lose crowd momentum' in comparison.warnings

    def test_vocal_clash_warning(self, make_point):
        from mixlab.modules.analysis.tasks import compare_points

        comparison = compare_points(
            make_point("instrumental", vocals=True),
            make_point("instrumental", vocals=True),
        )
        assert 'Vocal clash possible - use EQ to separate' in comparison.warnings
        assert 'Full frequency blend possible' not in comparison.techniques
