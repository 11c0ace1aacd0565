"""
Data Visualization Module for SearchScope
Creates charts for the dashboard pages
"""

from typing import Optional

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from config import CHART_COLORS
from utils import clean_url

METRIC_LABELS = {
    'clicks': 'Clicks',
    'impressions': 'Impressions',
    'ctr': 'CTR',
    'position': 'Avg. Position'
}


class GSCVisualizer:
    """Creates visualizations for search performance data"""

    def __init__(self):
        self.colors = CHART_COLORS

    def create_performance_overview(self, by_date: pd.DataFrame) -> Optional[go.Figure]:
        """
        Clicks and impressions over time on twin axes

        Args:
            by_date: DataFrame from a date-dimension fetch

        Returns:
            Plotly figure, or None without data
        """
        if by_date.empty:
            return None

        fig = make_subplots(
            rows=1, cols=1,
            specs=[[{"secondary_y": True}]],
            subplot_titles=['Search Performance Over Time']
        )

        fig.add_trace(
            go.Scatter(
                x=by_date['date'],
                y=by_date['clicks'],
                mode='lines',
                name='Clicks',
                line=dict(color=self.colors['primary'], width=3)
            ),
            secondary_y=False
        )

        fig.add_trace(
            go.Scatter(
                x=by_date['date'],
                y=by_date['impressions'],
                mode='lines',
                name='Impressions',
                line=dict(color=self.colors['secondary'], width=2, dash='dot')
            ),
            secondary_y=True
        )

        fig.update_xaxes(title_text="Date")
        fig.update_yaxes(title_text="Clicks", secondary_y=False)
        fig.update_yaxes(title_text="Impressions", secondary_y=True)

        fig.update_layout(
            height=400,
            hovermode='x unified',
            showlegend=True,
            legend=dict(x=0, y=1.1, orientation='h')
        )

        return fig

    def create_metric_trend(self, by_date: pd.DataFrame, metric: str = 'clicks') -> Optional[go.Figure]:
        """Single metric over time; position axis is reversed so up is better"""
        if by_date.empty:
            return None

        df = by_date.copy()
        if metric == 'ctr':
            df['ctr'] = df['ctr'] * 100

        fig = px.line(
            df, x='date', y=metric,
            labels={metric: METRIC_LABELS[metric] + (' (%)' if metric == 'ctr' else ''), 'date': 'Date'},
            color_discrete_sequence=[self.colors['primary']]
        )

        if metric == 'position':
            fig.update_yaxes(autorange='reversed')

        fig.update_layout(height=350, hovermode='x unified')
        return fig

    def create_device_chart(self, by_device: pd.DataFrame) -> Optional[go.Figure]:
        """
        Traffic split and CTR by device

        Args:
            by_device: DataFrame from a device-dimension fetch

        Returns:
            Plotly figure, or None without data
        """
        if by_device.empty:
            return None

        fig = make_subplots(
            rows=1, cols=2,
            specs=[[{'type': 'pie'}, {'type': 'bar'}]],
            subplot_titles=['Clicks by Device', 'CTR by Device']
        )

        fig.add_trace(
            go.Pie(
                labels=by_device['device'],
                values=by_device['clicks'],
                hole=0.4,
                marker_colors=[self.colors['primary'], self.colors['secondary'], self.colors['info']]
            ),
            row=1, col=1
        )

        fig.add_trace(
            go.Bar(
                x=by_device['device'],
                y=by_device['ctr'] * 100,
                marker_color=self.colors['success'],
                text=[f"{c * 100:.2f}%" for c in by_device['ctr']],
                textposition='auto'
            ),
            row=1, col=2
        )

        fig.update_layout(height=400, showlegend=False)
        fig.update_yaxes(title_text="CTR (%)", row=1, col=2)

        return fig

    def create_top_items_chart(self, df: pd.DataFrame, dimension: str, metric: str = 'clicks',
                               limit: int = 10) -> Optional[go.Figure]:
        """Horizontal bar chart of the top values of one dimension"""
        if df.empty:
            return None

        top = df.nlargest(limit, metric).iloc[::-1]
        labels = [clean_url(str(v), 40) for v in top[dimension]]

        fig = go.Figure(go.Bar(
            x=top[metric],
            y=labels,
            orientation='h',
            marker_color=self.colors['primary']
        ))

        fig.update_layout(
            title=f"Top {dimension.title()} by {METRIC_LABELS[metric]}",
            xaxis_title=METRIC_LABELS[metric],
            height=max(300, 35 * len(top)),
            margin=dict(l=10, r=10)
        )

        return fig


def format_table(df: pd.DataFrame, dimension: str) -> pd.DataFrame:
    """Display copy of a breakdown with CTR in percent and rounded position"""
    if df.empty:
        return df

    table = df.copy()
    table['ctr'] = (table['ctr'] * 100).round(2)
    table['position'] = table['position'].round(1)
    table = table.rename(columns={
        dimension: dimension.title(),
        'clicks': 'Clicks',
        'impressions': 'Impressions',
        'ctr': 'CTR (%)',
        'position': 'Position'
    })
    return table.sort_values('Clicks', ascending=False).reset_index(drop=True)
