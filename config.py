"""
Configuration file for SearchScope
Contains all constants, settings, and configuration parameters
"""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys and Authentication
GOOGLE_CLIENT_ID = os.getenv('GOOGLE_CLIENT_ID')
GOOGLE_CLIENT_SECRET = os.getenv('GOOGLE_CLIENT_SECRET')
GOOGLE_REDIRECT_URI = os.getenv('GOOGLE_REDIRECT_URI', 'http://localhost:8501/')
ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY')

# Google API Settings
GSC_SCOPES = [
    'https://www.googleapis.com/auth/webmasters.readonly',
    'https://www.googleapis.com/auth/webmasters',
    'openid',
    'https://www.googleapis.com/auth/userinfo.email',
    'https://www.googleapis.com/auth/userinfo.profile'
]

# Outbound calls are blocking; anything slower is reported as an upstream failure
API_TIMEOUT_SECONDS = float(os.getenv('API_TIMEOUT_SECONDS', '30'))

# Search Analytics request settings
SEARCH_ROW_LIMIT = 100
SEARCH_TYPE = 'web'
DEFAULT_DIMENSIONS = ['query']
VALID_DIMENSIONS = ['query', 'page', 'device', 'country', 'date', 'searchAppearance']

# Date Settings
DEFAULT_DATE_RANGE = 28  # days
DATA_FRESHNESS_DELAY = 3  # GSC data is typically 3 days behind
DATE_FORMAT = '%Y-%m-%d'

# Insight Store locking; websites share a lock when their ids collide modulo this
INSIGHT_LOCK_STRIPES = 64

# Metrics that rows can be ranked by
RANKABLE_METRICS = ['clicks', 'impressions', 'ctr', 'position']

# AI Model Settings
AI_MODEL = os.getenv('AI_MODEL', 'claude-3-7-sonnet-20250219')
AI_MAX_TOKENS = {
    'analysis': 1500,
    'recommendations': 800,
    'trends': 500
}

# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FILE = os.getenv('LOG_FILE')  # e.g. logs/searchscope_{time:YYYY-MM-DD}.log

# Insight Generation Prompts
INSIGHT_PROMPTS = {
    'analysis': """
    Analyze the following Google Search Console data and provide valuable insights.
    The data shows search performance including clicks, impressions, CTR, and position for various search queries.
    The "summary" block holds the precomputed totals for the whole period; use those figures as given.

    Data:
    {data}

    Please provide:
    1. A brief summary of overall performance
    2. 3-5 specific insights categorized as:
       - "positive" (strengths or improvements)
       - "opportunity" (areas that could be improved)
       - "info" (neutral but important observations)
    3. Top performing queries/pages and why they're successful
    4. Recommendations for improvement

    Format your response as valid JSON with the following structure:
    {{
      "summary": "Brief overview of search performance",
      "insights": [
        {{
          "type": "positive|opportunity|info",
          "title": "Short insight title",
          "description": "Detailed explanation"
        }}
      ],
      "topPerformers": {{
        "queries": [{{"name": "query", "reason": "why it performs well"}}],
        "pages": [{{"name": "page", "reason": "why it performs well"}}]
      }},
      "recommendations": ["recommendation 1", "recommendation 2"]
    }}
    """,

    'recommendations': """
    Analyze this specific search query "{query}" from Google Search Console data:

    {data}

    Provide 3-5 actionable recommendations to improve its performance in search results.
    Format your response as a JSON array of strings, each containing one recommendation.
    """,

    'trends': """
    Analyze these historical search performance metrics from Google Search Console:

    {data}

    Provide a concise paragraph summarizing the performance trends over time.
    Focus on changes in clicks, impressions, CTR, and position.
    Highlight any significant patterns or anomalies.
    """
}

# Visualization Settings
CHART_COLORS = {
    'primary': '#1f77b4',
    'secondary': '#ff7f0e',
    'success': '#2ca02c',
    'warning': '#ff9800',
    'danger': '#d62728',
    'info': '#17a2b8'
}

INSIGHT_ICONS = {
    'positive': '✅',
    'opportunity': '💡',
    'info': 'ℹ️'
}

# Error Messages
ERROR_MESSAGES = {
    'auth_failed': "Authentication failed. Please check your credentials.",
    'not_connected': "Google Search Console not connected",
    'no_data': "No data available for the selected date range.",
    'invalid_url': "Please enter a valid website URL.",
    'no_ai_key': "No Anthropic API key configured. Add ANTHROPIC_API_KEY to your .env file.",
    'analysis_failed': "Could not analyze search data. Please try again.",
    'recommendations_failed': "Could not generate recommendations. Please try again."
}

# Success Messages
SUCCESS_MESSAGES = {
    'auth_success': "Successfully connected to Google Search Console!",
    'data_loaded': "Data successfully loaded from Search Console.",
    'insights_saved': "Insights generated and saved.",
    'website_saved': "Website saved."
}
