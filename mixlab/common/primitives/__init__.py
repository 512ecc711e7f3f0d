"""
Primitives - pure numpy/scipy building blocks for the analysis tasks.

    stft.py                # framing, windows, zero-padded FFT
    spectral.py            # centroid, rolloff, flux, moments, MFCC, chroma, tonnetz, contrast
    energy.py              # band energies, time-domain energy, combined energy curve
    rhythm.py              # tempo, beat spectrum, bar patterns
    harmonic.py            # HPSS, key strength, chroma descriptors
    dynamics.py            # buildups, drops, plateaus, peaks
    filtering.py           # smoothing, normalization, similarity
    transition_scoring.py  # Camelot wheel, tempo and chroma scoring
"""
