"""
Utility functions for the LCA scorer package.

This module provides helper functions for:
- Summarizing a scored batch (class sizes, mean posteriors)
- ZIP export of scoring results together with the model that produced them

These utilities support the CLI and the API by handling cross-cutting
concerns that don't belong to the scoring core.
"""

import io
import json
import zipfile
from datetime import datetime
from typing import Optional

import pandas as pd

from .batch import LABEL_COLUMN, BatchResult
from .models.definition import ModelDefinition
from .serialization import model_to_json
from .validation import ValidationReport


# =============================================================================
# SUMMARIES
# =============================================================================

def summarize_batch(result: BatchResult, model: ModelDefinition) -> dict:
    """
    Key figures for a scored batch.

    Returns:
        Dictionary with record counts, class sizes (count and share of the
        scored records), and the mean posterior per class
    """
    sizes = result.class_sizes()
    n_scored = result.n_scored
    mean_posteriors = (
        result.posteriors[list(model.classes)].mean()
        if n_scored else pd.Series(0.0, index=list(model.classes))
    )
    return {
        'n_records': result.n_records,
        'n_scored': n_scored,
        'n_failed': result.n_failed,
        'class_sizes': {c: int(sizes[c]) for c in model.classes},
        'class_shares': {c: (float(sizes[c]) / n_scored if n_scored else 0.0) for c in model.classes},
        'mean_posteriors': {c: float(mean_posteriors[c]) for c in model.classes},
    }


# =============================================================================
# EXPORT FUNCTIONALITY
# =============================================================================

def create_export_zip(result: BatchResult,
                      model: ModelDefinition,
                      validation_report: Optional[ValidationReport] = None,
                      original_data: Optional[pd.DataFrame] = None) -> bytes:
    """
    Create a ZIP file containing all scoring results for download.

    This packages everything needed to continue the analysis in Python, R,
    or other tools: CSV posteriors and failures, the exact model that was
    used (JSON), a summary, and a README with usage instructions.

    Args:
        result: Output of `score_batch`
        model: The Model Definition used for scoring
        validation_report: Optional certification report to include
        original_data: Optional recoded input records

    Returns:
        bytes: ZIP file contents ready for download
    """
    zip_buffer = io.BytesIO()

    # Track which files we include for the metadata
    metadata = {
        'export_timestamp': datetime.now().isoformat(),
        'classes': list(model.classes),
        'variables': list(model.variables),
        'files_included': []
    }

    with zipfile.ZipFile(zip_buffer, 'w', zipfile.ZIP_DEFLATED) as zf:

        # Posterior probabilities and assigned class per record
        csv_buffer = io.StringIO()
        result.posteriors.to_csv(csv_buffer, index_label=result.posteriors.index.name or 'record')
        zf.writestr('posteriors.csv', csv_buffer.getvalue())
        metadata['files_included'].append('posteriors.csv')

        # Records that could not be scored
        if result.errors:
            csv_buffer = io.StringIO()
            result.errors_frame().to_csv(csv_buffer, index=False)
            zf.writestr('errors.csv', csv_buffer.getvalue())
            metadata['files_included'].append('errors.csv')

        # Input data
        if original_data is not None:
            csv_buffer = io.StringIO()
            original_data.to_csv(csv_buffer, index_label=original_data.index.name or 'record')
            zf.writestr('original_data.csv', csv_buffer.getvalue())
            metadata['files_included'].append('original_data.csv')

        # The model itself, so results can always be reproduced
        zf.writestr('model.json', model_to_json(model))
        metadata['files_included'].append('model.json')

        summary = summarize_batch(result, model)
        if validation_report is not None:
            summary['validation'] = validation_report.as_dict()
        zf.writestr('scoring_summary.json', json.dumps(summary, indent=2))
        metadata['files_included'].append('scoring_summary.json')

        # README with usage instructions
        readme_content = _create_readme_content(model, metadata)
        zf.writestr('README.md', readme_content)

        # Final metadata file
        zf.writestr('metadata.json', json.dumps(metadata, indent=2))

    zip_buffer.seek(0)
    return zip_buffer.getvalue()


def _create_readme_content(model: ModelDefinition, metadata: dict) -> str:
    """Generate README content for the export ZIP."""

    return f"""# Latent Class Scoring Export

## Export Date: {metadata['export_timestamp']}

## Classes: {', '.join(model.classes)}

## Variables: {', '.join(model.variables)}

## Files Included

{chr(10).join(f'- {f}' for f in metadata['files_included'])}

## Usage in Python

```python
import pandas as pd
from lca_scorer.serialization import load_model

posteriors = pd.read_csv('posteriors.csv', index_col=0)
model = load_model('model.json')

# Records assigned with low certainty
uncertain = posteriors[posteriors[list(model.classes)].max(axis=1) < 0.7]
```

## Usage in R

```r
library(tidyverse)

posteriors <- read_csv('posteriors.csv')
posteriors |> count({LABEL_COLUMN})
```

## Interpreting Results

- **Posterior columns**: P(class | record) for every class; each row sums to 1.
- **{LABEL_COLUMN}**: The class with the highest posterior. Ties go to the
  class listed first in the model.
- **errors.csv**: Records that could not be scored and why. Fix the upstream
  recoding and rescore them.

## Notes

Generated by lca-scorer
"""
