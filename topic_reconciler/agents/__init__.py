"""
Pipeline stages for the topic reconciler.

Contains every stage a topic list passes through:
- Text Normalizer
- Duplicate Detector
- Similarity Matcher
- Gap Analyzer
- Topic Clusterer
"""
