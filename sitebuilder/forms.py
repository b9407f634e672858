"""Forms for the sitebuilder app.

The selection form lets an operator try the component selector against a
hand-written page outline without touching the workspace.
"""

from __future__ import annotations

from django import forms

from .selector.types import Section


class SectionsForm(forms.Form):
    """Page outline submitted to the component selector."""

    business_type = forms.CharField(
        required=False,
        max_length=100,
        label='Business type',
        help_text='Optional industry used for the fit score (e.g. SaaS, Restaurant).',
    )
    sections = forms.CharField(
        widget=forms.Textarea(
            attrs={
                'rows': 8,
                'placeholder': 'Hero | Welcome\nFeatures | Why us | 3 features\nCTA | Get started',
            }
        ),
        label='Sections',
        help_text=(
            'One section per line using "type | name | description | component". '
            'Only the type is required; a tab also works as the separator.'
        ),
    )

    def clean_sections(self) -> list[Section]:
        """Parse newline-delimited section lines into :class:`Section` objects."""

        raw_value = self.cleaned_data.get('sections', '')
        parsed: list[Section] = []

        for index, line in enumerate(raw_value.splitlines(), start=1):
            candidate = line.strip()
            if not candidate:
                continue
            separator = '|' if '|' in candidate else '\t'
            parts = [piece.strip() for piece in candidate.split(separator)]
            if len(parts) > 4:
                raise forms.ValidationError(
                    f'Section line {index} has more than four fields separated by |.'
                )
            section_type, name, description, override = (parts + ['', '', '', ''])[:4]
            if not section_type:
                raise forms.ValidationError(f'Section line {index} is missing a section type.')
            parsed.append(
                Section(
                    section_type=section_type,
                    name=name,
                    description=description,
                    order=len(parsed),
                    component_override=override or None,
                )
            )

        if not parsed:
            raise forms.ValidationError('Provide at least one section.')
        return parsed
