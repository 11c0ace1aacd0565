"""
SearchScope - Main Streamlit Application
Search Console performance dashboard with AI-powered insights
"""

from datetime import datetime, timedelta

import streamlit as st

from ai_insights import AIInsightsGenerator
from analyzer import compare_summaries, compute_summary, find_row, previous_period, top_rows
from auth import handle_authentication
from config import (
    DATA_FRESHNESS_DELAY, DEFAULT_DATE_RANGE, ERROR_MESSAGES, INSIGHT_ICONS,
    SUCCESS_MESSAGES
)
from data_collector import to_dataframe
from errors import SearchScopeError
import handlers
from logger import log
from storage import InsightStore, MemStorage
from utils import (
    format_change, format_number, format_percentage, format_position,
    get_date_range, property_display_url
)
from visualizations import GSCVisualizer, format_table

# Page configuration
st.set_page_config(
    page_title="SearchScope - Search Console Insights",
    page_icon="🔍",
    layout="wide",
    initial_sidebar_state="expanded"
)


@st.cache_resource
def get_storage() -> MemStorage:
    return MemStorage()


@st.cache_resource
def get_insight_store() -> InsightStore:
    return InsightStore(get_storage())


def get_generator():
    """The AI generator, or None when no API key is configured"""
    if 'ai_generator' not in st.session_state:
        try:
            st.session_state.ai_generator = AIInsightsGenerator()
        except SearchScopeError as e:
            log.warning(e.message)
            st.session_state.ai_generator = None
    return st.session_state.ai_generator


def main():
    """Main application function"""
    storage = get_storage()

    with st.sidebar:
        st.title("🔍 SearchScope")
        st.markdown("---")

    user = handle_authentication(storage)

    if not user:
        show_welcome_screen()
        return

    with st.sidebar:
        st.markdown("---")
        st.subheader("📊 Property")

        sites = load_sites(user)
        if not sites:
            st.warning("No Search Console properties found. Please ensure you have access to at least one property.")
            return

        site = st.selectbox(
            "Select Property",
            sites,
            format_func=lambda s: s['site_url'],
            help="Choose the Search Console property to analyze"
        )

        start_date, end_date = select_date_range()

    try:
        website, _ = handlers.save_website(storage, user, {
            'url': property_display_url(site['site_url']),
            'siteUrl': site['site_url'],
            'permissionLevel': site['permission_level']
        })
        data = load_dashboard_data(user, website, start_date, end_date)
    except SearchScopeError as e:
        st.error(f"❌ {e.message}")
        return

    st.title(f"Search Performance: {website.url}")
    st.caption(f"{start_date:%b %d, %Y} – {end_date:%b %d, %Y}")

    tabs = st.tabs(["📈 Dashboard", "⚡ Performance", "🔑 Keywords", "💡 AI Insights"])

    with tabs[0]:
        show_dashboard(website, data)
    with tabs[1]:
        show_performance(data)
    with tabs[2]:
        show_keywords(data)
    with tabs[3]:
        show_insights(website, data)


def show_welcome_screen():
    """Landing page shown before the user connects"""
    st.title("Welcome to SearchScope")
    st.markdown("""
    Connect your Google Search Console account to see:

    - **Search performance** - clicks, impressions, CTR and average position,
      compared with the previous period
    - **Breakdowns** by query, page, device and country
    - **AI insights** - a summary of what is working, what could be improved,
      and concrete recommendations, generated by Claude

    Use the sidebar to connect with Google.
    """)


def load_sites(user):
    if 'sites' not in st.session_state:
        try:
            st.session_state.sites = handlers.list_sites(user)
        except SearchScopeError as e:
            st.error(f"❌ Failed to fetch properties: {e.message}")
            return []
    return st.session_state.sites


def select_date_range():
    date_option = st.radio(
        "Date Range",
        ["Last 7 days", "Last 28 days", "Last 3 months", "Custom"],
        index=1
    )

    if date_option == "Custom":
        default_end = datetime.now().date() - timedelta(days=DATA_FRESHNESS_DELAY)
        col1, col2 = st.columns(2)
        with col1:
            start = st.date_input("Start Date", default_end - timedelta(days=DEFAULT_DATE_RANGE - 1))
        with col2:
            end = st.date_input("End Date", default_end)
        return start, end

    days_map = {
        "Last 7 days": 7,
        "Last 28 days": 28,
        "Last 3 months": 90
    }
    return get_date_range(days_map[date_option])


def load_dashboard_data(user, website, start_date, end_date) -> dict:
    """Fetch every breakdown the pages need, once per property and range"""
    cache_key = (website.site_url, start_date, end_date)
    cached = st.session_state.get('dashboard_data')
    if cached and cached['key'] == cache_key:
        return cached

    storage = get_storage()
    site_url = website.site_url

    with st.spinner("Collecting data from Google Search Console..."):
        snapshot = storage.get_search_data(website.id, start_date, end_date)
        if snapshot:
            queries = snapshot.data
        else:
            queries = handlers.fetch_analytics(user, site_url, start_date, end_date, ['query'])
            storage.create_search_data(website.id, queries)

        prev_start, prev_end = previous_period(start_date, end_date)
        previous = handlers.fetch_analytics(user, site_url, prev_start, prev_end, ['query'])

        data = {
            'key': cache_key,
            'queries': queries,
            'previous': previous,
            'by_date': handlers.fetch_performance(user, 'date', site_url, start_date, end_date),
            'by_device': handlers.fetch_performance(user, 'device', site_url, start_date, end_date),
            'by_page': handlers.fetch_performance(user, 'page', site_url, start_date, end_date),
            'by_country': handlers.fetch_performance(user, 'country', site_url, start_date, end_date)
        }

    if not queries.rows:
        st.info(ERROR_MESSAGES['no_data'])

    st.session_state.dashboard_data = data
    return data


def show_key_metrics(data: dict):
    """Display summary cards with previous-period deltas"""
    summary = compute_summary(data['queries'])
    changes = compare_summaries(summary, compute_summary(data['previous']))

    col1, col2, col3, col4 = st.columns(4)

    with col1:
        st.metric(
            "Total Clicks",
            format_number(summary.total_clicks),
            format_change(changes['clicksChange']),
            help="Total clicks from Google Search"
        )

    with col2:
        st.metric(
            "Total Impressions",
            format_number(summary.total_impressions),
            format_change(changes['impressionsChange']),
            help="Total times your site appeared in search"
        )

    with col3:
        st.metric(
            "Average CTR",
            format_percentage(summary.avg_ctr),
            format_change(changes['ctrChange']),
            help="Clicks divided by impressions"
        )

    with col4:
        st.metric(
            "Average Position",
            format_position(summary.avg_position),
            f"{changes['positionDelta']:+.1f}" if changes['positionDelta'] else None,
            delta_color="inverse",
            help="Impressions-weighted average ranking"
        )


def show_dashboard(website, data: dict):
    st.header("🎯 Overview")
    show_key_metrics(data)

    visualizer = GSCVisualizer()
    by_date = to_dataframe(data['by_date'])

    metric = st.radio(
        "Chart metric",
        ['clicks', 'impressions', 'ctr', 'position'],
        format_func=str.title,
        horizontal=True
    )
    fig = visualizer.create_metric_trend(by_date, metric)
    if fig:
        st.plotly_chart(fig, use_container_width=True)

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Top Queries")
        st.dataframe(format_table(to_dataframe(data['queries']), 'query').head(10), use_container_width=True)
    with col2:
        st.subheader("Top Pages")
        st.dataframe(format_table(to_dataframe(data['by_page']), 'page').head(10), use_container_width=True)

    st.subheader("Latest Insights")
    insights = handlers.get_insights(get_insight_store(), website.id)
    if insights:
        for insight in insights:
            st.markdown(f"{INSIGHT_ICONS[insight.type.value]} **{insight.title}** - {insight.description}")
    else:
        st.caption("No insights yet. Generate them from the AI Insights tab.")


def show_performance(data: dict):
    st.header("Search Performance Analysis")
    visualizer = GSCVisualizer()

    fig = visualizer.create_performance_overview(to_dataframe(data['by_date']))
    if fig:
        st.plotly_chart(fig, use_container_width=True)

    by_device = to_dataframe(data['by_device'])
    fig = visualizer.create_device_chart(by_device)
    if fig:
        st.plotly_chart(fig, use_container_width=True)

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Devices")
        st.dataframe(format_table(by_device, 'device'), use_container_width=True)
    with col2:
        st.subheader("Countries")
        st.dataframe(format_table(to_dataframe(data['by_country']), 'country').head(15), use_container_width=True)

    generator = get_generator()
    if generator and st.button("📝 Summarize Trends"):
        try:
            with st.spinner("Summarizing performance trends..."):
                st.info(handlers.performance_trends(generator, data['by_date']))
        except SearchScopeError as e:
            st.error(f"❌ {e.message}")


def show_keywords(data: dict):
    st.header("Keyword Performance")

    queries_df = to_dataframe(data['queries'])
    if queries_df.empty:
        st.info(ERROR_MESSAGES['no_data'])
        return

    fig = GSCVisualizer().create_top_items_chart(queries_df, 'query', 'clicks')
    if fig:
        st.plotly_chart(fig, use_container_width=True)

    st.dataframe(format_table(queries_df, 'query'), use_container_width=True)

    st.subheader("Query Recommendations")
    generator = get_generator()
    if not generator:
        st.warning(ERROR_MESSAGES['no_ai_key'])
        return

    candidates = [row.keys[0] for row in top_rows(data['queries'], 'impressions', 50) if row.keys]
    query = st.selectbox("Query", candidates)

    if query and st.button("💡 Get Recommendations"):
        try:
            with st.spinner(f"Analyzing '{query}'..."):
                recommendations = handlers.query_recommendations(
                    generator, query, find_row(data['queries'], query)
                )
        except SearchScopeError as e:
            st.error(f"❌ {ERROR_MESSAGES['recommendations_failed']} ({e.message})")
            return

        for recommendation in recommendations:
            st.markdown(f"- {recommendation}")


def show_insights(website, data: dict):
    st.header("AI-Powered Insights")

    generator = get_generator()
    if not generator:
        st.warning(ERROR_MESSAGES['no_ai_key'])
        return

    if st.button("🚀 Generate Insights", type="primary"):
        try:
            with st.spinner("Generating AI-powered insights..."):
                analysis, _ = handlers.refresh_insights(get_insight_store(), generator, website.id, data['queries'])
        except SearchScopeError as e:
            st.error(f"❌ {ERROR_MESSAGES['analysis_failed']} ({e.message})")
            return

        handlers.remember_analysis(st.session_state, website.id, analysis)
        st.success(SUCCESS_MESSAGES['insights_saved'])

    analysis = handlers.recall_analysis(st.session_state, website.id)
    if not analysis:
        st.caption("Insights are generated from the query data for the selected range.")
        return

    st.subheader("Summary")
    st.markdown(analysis['summary'])

    for insight in analysis['insights']:
        st.markdown(f"{INSIGHT_ICONS[insight['type']]} **{insight['title']}**")
        st.caption(insight['description'])

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Top Queries")
        for performer in analysis['topPerformers']['queries']:
            st.markdown(f"- **{performer['name']}**: {performer['reason']}")
    with col2:
        st.subheader("Top Pages")
        for performer in analysis['topPerformers']['pages']:
            st.markdown(f"- **{performer['name']}**: {performer['reason']}")

    st.subheader("Recommendations")
    for recommendation in analysis['recommendations']:
        st.markdown(f"- {recommendation}")


if __name__ == "__main__":
    main()
