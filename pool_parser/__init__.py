"""
Ham Pool Parser
===============
Structured extraction of amateur-radio exam question pools from Word documents.

Architecture:
    - Document Reader: Yields paragraph texts in reading order
    - Line Classifier: Tags each paragraph with its structural role
    - State Machine: Rebuilds subelement / group / question hierarchy
    - Figure Resolver: Attaches figure images to questions that cite them
    - Validator: Flags structural gaps for review
    - Output Formatter: Produces the ordered JSON pool document

Version: 1.0.0
"""

__version__ = "1.0.0"
