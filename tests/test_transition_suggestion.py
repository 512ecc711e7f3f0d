"""Unit tests for TransitionSuggestionTask.

Covers:
    - compatibility components (harmonic, rhythmic, energy, mood)
    - technique selection from the candidate table
    - crossfader / EQ / effect automation per technique
    - beat timing with half-up rounding and phrase locking
    - tips, confidence, alternatives
    - batch suggestions and execute() contract
"""

import json
import numpy as np
import pytest


def make_track(track_id="A", out_points=(), in_points=(), tempo=128.0, key="8A",
               spectral=None, mood=None):
    from mixlab.modules.analysis.tasks import BasicFeatures, MixPointAnalysis, TrackAnalysis

    analysis = MixPointAnalysis(
        track_id=track_id,
        duration=240.0,
        optimal_in_points=list(in_points),
        optimal_out_points=list(out_points),
    )
    return TrackAnalysis(
        track_id=track_id,
        basic=BasicFeatures(duration=240.0, tempo=tempo, key=key),
        mix_points=analysis,
        spectral=spectral,
        mood=mood,
    )


# =============================================================================
# COMPATIBILITY TESTS
# =============================================================================

@pytest.mark.unit
class TestCompatibility:

    def test_missing_key_defaults_to_half(self):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        score = TransitionSuggestionTask.harmonic_compatibility(
            make_track("A", key=None), make_track("B", key="8A"),
        )
        assert score == pytest.approx(0.5)

    def test_chroma_blends_into_key_score(self, make_series):
        """
        ЧТО ПРОВЕРЯЕМ:
            Without keys the 0.5 default is blended 0.6 / 0.4 with the
            chroma similarity (identical chroma -> 1)
        """
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        score = TransitionSuggestionTask.harmonic_compatibility(
            make_track("A", key=None, spectral=make_series(100)),
            make_track("B", key=None, spectral=make_series(100)),
        )
        assert score == pytest.approx(0.5 * 0.6 + 0.4)

    def test_key_distance_scores(self):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        harmonic = TransitionSuggestionTask.harmonic_compatibility
        assert harmonic(make_track(key="8A"), make_track(key="Am")) == pytest.approx(1.0)
        assert harmonic(make_track(key="8A"), make_track(key="9A")) == pytest.approx(0.9)
        assert harmonic(make_track(key="8A"), make_track(key="8B")) == pytest.approx(0.8)
        assert harmonic(make_track(key="8A"), make_track(key="3A")) == pytest.approx(0.15)

    def test_rhythmic_mixes_tempo_and_stability(self, make_point):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        rhythmic = TransitionSuggestionTask.rhythmic_compatibility(
            make_point("outro", rhythmic=0.6), make_point("intro", rhythmic=0.8), 128.0, 150.0,
        )
        assert rhythmic == pytest.approx(0.3 * 0.7 + 0.7 * 0.3)

    def test_energy_curves_blend_in(self, make_point, make_curve):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask, MoodAnalysisResult

        track_a = make_track("A", mood=MoodAnalysisResult(energy_curve=make_curve(np.full(50, 0.4))))
        track_b = make_track("B", mood=MoodAnalysisResult(energy_curve=make_curve(np.full(50, 0.8))))

        score = TransitionSuggestionTask.energy_compatibility(
            track_a, track_b, make_point("outro", energy=0.5), make_point("intro", energy=0.5),
        )
        assert score == pytest.approx(0.6 + 0.4 * 0.6)

    def test_empty_curve_is_ignored(self, make_point, make_curve):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask, MoodAnalysisResult

        track_a = make_track("A", mood=MoodAnalysisResult())
        track_b = make_track("B", mood=MoodAnalysisResult(energy_curve=make_curve(np.full(50, 0.8))))

        score = TransitionSuggestionTask.energy_compatibility(
            track_a, track_b, make_point("outro", energy=0.2), make_point("intro", energy=0.6),
        )
        assert score == pytest.approx(0.6)

    def test_mood_from_vad_distance(self):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask, MoodAnalysisResult, MoodProfile

        mood_a = MoodAnalysisResult(mood=MoodProfile(valence=0.2, arousal=0.5, dominance=0.5))
        mood_b = MoodAnalysisResult(mood=MoodProfile(valence=0.8, arousal=0.5, dominance=0.5))

        score = TransitionSuggestionTask.mood_compatibility(make_track(mood=mood_a), make_track(mood=mood_b))
        assert score == pytest.approx(0.8)

    def test_mood_without_profiles_is_full_match(self):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        assert TransitionSuggestionTask.mood_compatibility(make_track(), make_track()) == pytest.approx(1.0)


# =============================================================================
# TECHNIQUE TESTS
# =============================================================================

@pytest.mark.unit
class TestTechniques:
    """One scenario per technique in the candidate table."""

    def test_outro_into_intro_classic_blend(self, make_point):
        """
        ЧТО ПРОВЕРЯЕМ:
            Perfect match outro -> intro picks classic blend (0.9 beats
            echo out 0.8), 32 beats at 128 BPM = 15 s, confidence capped at 1
        """
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        out_point = make_point("outro", timestamp=180.0, energy=0.3)
        in_point = make_point("intro", timestamp=15.0, energy=0.3)
        suggestion = TransitionSuggestionTask().suggest(
            make_track("A"), make_track("B"), out_point, in_point,
        )

        assert suggestion.technique_key == 'classic_blend'
        assert suggestion.technique.name == 'Classic Blend'
        assert suggestion.technique.difficulty == 'beginner'
        assert suggestion.compatibility.overall == pytest.approx(1.0)
        assert suggestion.crossfader.type == 'linear'
        assert suggestion.crossfader.duration == pytest.approx(15.0)
        assert [p.time for p in suggestion.crossfader.key_points] == [0, 0.5, 1]
        assert [(a.band, a.track) for a in suggestion.eq_automation] == [('low', 'A'), ('low', 'B')]
        assert suggestion.effect_automation == []
        assert suggestion.confidence == pytest.approx(1.0)
        assert len(suggestion.technique.tips) == 2
        assert [a.technique for a in suggestion.alternatives] == ['Bass Swap', 'Echo Out']

    def test_timing_is_phrase_locked(self, make_point):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        suggestion = TransitionSuggestionTask().suggest(
            make_track("A"), make_track("B"),
            make_point("outro", timestamp=180.0, energy=0.3),
            make_point("intro", timestamp=15.0, energy=0.3),
        )

        assert suggestion.timing.start_beat == 384
        assert suggestion.timing.end_beat == 64
        assert suggestion.timing.phrase_locked is True
        assert suggestion.timing.total_duration == pytest.approx(15.0)

    def test_drop_swap(self, make_point):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        suggestion = TransitionSuggestionTask().suggest(
            make_track("A"), make_track("B"),
            make_point("drop", energy=0.9, suitability=0.8),
            make_point("drop", energy=0.9, suitability=0.8),
        )

        assert suggestion.technique_key == 'drop_swap'
        assert suggestion.crossfader.type == 'sharp'
        assert suggestion.crossfader.duration == pytest.approx(1.875)
        # Hold ratio 0.1 around the midpoint
        assert [p.time for p in suggestion.crossfader.key_points] == pytest.approx([0, 0.4, 0.6, 1])
        assert [a.duration for a in suggestion.eq_automation] == pytest.approx([0.375, 0.5625])
        assert suggestion.confidence == pytest.approx(1.0 * 0.9 * 0.8)
        assert [a.technique for a in suggestion.alternatives] == ['Classic Blend', 'Bass Swap']

    def test_breakdown_bass_swap_falls_back_to_linear_fader(self, make_point):
        """
        ЧТО ПРОВЕРЯЕМ:
            Bass swap uses the 'hold' crossfader family, rendered as linear,
            with a 10% instant low-band swap
        """
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        suggestion = TransitionSuggestionTask().suggest(
            make_track("A", key="8A"), make_track("B", key="10A"),
            make_point("breakdown", energy=0.2),
            make_point("intro", energy=0.8),
        )

        assert suggestion.compatibility.overall <= 0.8
        assert suggestion.technique_key == 'bass_swap'
        assert suggestion.crossfader.type == 'linear'
        assert [a.duration for a in suggestion.eq_automation] == pytest.approx([0.375, 0.375])
        assert [a.technique for a in suggestion.alternatives] == ['Classic Blend', 'Filter Sweep']

    def test_echo_out_adds_delay_and_reverb(self, make_point):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        suggestion = TransitionSuggestionTask().suggest(
            make_track("A", key="8A"), make_track("B", key="3A"),
            make_point("outro", energy=0.3),
            make_point("instrumental", energy=0.3),
        )

        assert suggestion.technique_key == 'echo_out'
        assert suggestion.crossfader.type == 'exponential'
        # Equal energies: the ease-in variant
        assert suggestion.crossfader.key_points[1].time == pytest.approx(0.4)
        assert suggestion.crossfader.key_points[1].position == pytest.approx(-0.5)
        assert [e.effect for e in suggestion.effect_automation] == ['delay', 'reverb']
        assert [a.duration for a in suggestion.eq_automation] == pytest.approx([4.5, 6.0])
        assert suggestion.technique.tips[-2:] == [
            'Key clash detected - use EQ aggressively to separate frequencies',
            'Prepare effects in advance and practice the timing',
        ]
        assert len(suggestion.technique.tips) == 4

    def test_energy_gap_filter_sweep_with_flanger(self, make_point):
        """
        ЧТО ПРОВЕРЯЕМ:
            Low overall with a busy out-point adds the flanger on both decks
        """
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        suggestion = TransitionSuggestionTask().suggest(
            make_track("A", key="8A", tempo=128.0), make_track("B", key="3A", tempo=150.0),
            make_point("instrumental", energy=0.9, complexity="complex"),
            make_point("instrumental", energy=0.1),
        )

        assert suggestion.compatibility.rhythmic == pytest.approx(0.51)
        assert suggestion.compatibility.overall < 0.6
        assert suggestion.technique_key == 'filter_sweep'
        assert suggestion.crossfader.type == 's-curve'
        assert [e.effect for e in suggestion.effect_automation] == ['filter', 'flanger']
        assert suggestion.effect_automation[1].track == 'both'
        assert len(suggestion.technique.tips) == 4

    def test_loop_layer_for_minimal_into_complex(self, make_point):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        suggestion = TransitionSuggestionTask().suggest(
            make_track("A", key="8A"), make_track("B", key="3A"),
            make_point("instrumental", complexity="minimal"),
            make_point("instrumental", complexity="complex"),
        )

        assert suggestion.technique_key == 'loop_layer'
        assert suggestion.crossfader.type == 'logarithmic'
        assert len(suggestion.eq_automation) == 3

    def test_no_candidate_defaults_to_classic(self, make_point):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        suggestion = TransitionSuggestionTask().suggest(
            make_track("A", key="8A"), make_track("B", key="3A"),
            make_point("instrumental"), make_point("instrumental"),
        )
        assert suggestion.technique_key == 'classic_blend'


# =============================================================================
# TIMING / BATCH TESTS
# =============================================================================

@pytest.mark.unit
class TestTimingAndBatch:

    def test_half_beats_round_up(self, make_point):
        """
        ЧТО ПРОВЕРЯЕМ:
            2.5 beats rounds to 3 (Python round() would give 2)
        """
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        timing = TransitionSuggestionTask().timing(
            make_point("outro", timestamp=1.171875), make_point("intro", timestamp=0.0),
            duration=15.0, tempo_a=128.0, tempo_b=128.0,
        )
        assert timing.start_beat == 3
        assert timing.end_beat == 32
        assert timing.phrase_locked is False

    def test_missing_tempo_uses_default(self, make_point):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        suggestion = TransitionSuggestionTask().suggest(
            make_track("A", tempo=None), make_track("B", tempo=None),
            make_point("outro", timestamp=30.0, energy=0.3),
            make_point("intro", timestamp=0.0, energy=0.3),
        )
        assert suggestion.timing.start_beat == 64
        assert suggestion.compatibility.rhythmic == pytest.approx(1.0)

    def test_batch_uses_top_two_points_each(self, make_point):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        track_a = make_track("A", out_points=[
            make_point("outro", timestamp=200.0, suitability=0.9),
            make_point("breakdown", timestamp=120.0, suitability=0.7),
            make_point("instrumental", timestamp=60.0, suitability=0.65),
        ])
        track_b = make_track("B", in_points=[
            make_point("intro", timestamp=16.0, suitability=0.95),
            make_point("instrumental", timestamp=40.0, suitability=0.7),
        ])

        suggestions = TransitionSuggestionTask().suggest_batch(track_a, track_b)

        assert len(suggestions) == 4
        confidences = [s.confidence for s in suggestions]
        assert confidences == sorted(confidences, reverse=True)
        assert 60.0 not in {s.out_point.timestamp for s in suggestions}
        assert suggestions[0].id.startswith("A-B-")

    def test_batch_without_points_is_empty(self):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        assert TransitionSuggestionTask().suggest_batch(make_track("A"), make_track("B")) == []

    def test_suggestion_is_json_serializable(self, make_point):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask

        suggestion = TransitionSuggestionTask().suggest(
            make_track("A"), make_track("B"),
            make_point("outro", energy=0.3, complexity="complex"),
            make_point("intro", energy=0.3),
        )
        data = json.loads(json.dumps(suggestion.to_dict()))

        assert data['track_a']['track_id'] == "A"
        assert data['track_b']['in_point']['type'] == "intro"
        assert data['crossfader']['key_points'][0]['easing'] == "linear"

    def test_key_point_fields_serialized(self):
        """
        ЧТО ПРОВЕРЯЕМ:
            Crossfader points serialize as (time, position, easing),
            EQ points as (time, value)
        """
        from mixlab.modules.analysis.tasks.transition_suggestion import crossfader_curve, eq_automation

        crossfader = crossfader_curve('s-curve', 8.0).to_dict()
        eq = eq_automation('gradual_swap', 8.0)[0].to_dict()

        assert crossfader['key_points'][0] == {'time': 0, 'position': -1, 'easing': 'ease-in'}
        assert crossfader['key_points'][-1] == {'time': 1, 'position': 1, 'easing': 'ease-out'}
        assert eq['key_points'][0] == {'time': 0, 'value': 0.5}


# =============================================================================
# EXECUTE CONTRACT TESTS
# =============================================================================

@pytest.mark.unit
class TestExecute:

    def test_execute_requires_both_tracks(self):
        from mixlab.core.errors import TransitionSuggestionError
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask, create_audio_context

        context = create_audio_context(np.zeros(100, dtype=np.float32), 44100, track_a=make_track("A"))

        with pytest.raises(TransitionSuggestionError):
            TransitionSuggestionTask().execute(context)

    def test_execute_returns_ranked_result(self, make_point):
        from mixlab.modules.analysis.tasks import TransitionSuggestionTask, create_audio_context

        context = create_audio_context(
            np.zeros(100, dtype=np.float32), 44100,
            track_a=make_track("A", out_points=[make_point("outro", energy=0.3)]),
            track_b=make_track("B", in_points=[make_point("intro", energy=0.3)]),
        )

        result = TransitionSuggestionTask().execute(context)

        assert result.success
        assert len(result.suggestions) == 1
        assert result.best is result.suggestions[0]
        assert result.to_dict()['task_name'] == "TransitionSuggestion"
