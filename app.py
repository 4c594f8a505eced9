# ==============================================================
# StallOS: AI street food OS (Streamlit dashboard)
# run: streamlit run app.py
# ==============================================================

import logging
from datetime import datetime

import streamlit as st
import plotly.express as px
import plotly.io as pio

from stall_auth import password_strength, validate_sign_in, validate_sign_up
from stall_ai import (
    CHAT_GREETING, AssistantError, build_assistant, chat_reply, daily_strategy,
    sous_chef_advice, zero_waste_recipe,
)
from stall_charts import (
    cost_breakdown_figure, metrics_frame, profit_distribution_figure, sales_vs_margin_figure,
)
from stall_config import (
    DEFAULT_INGREDIENT_PRICES, MENU_ITEMS, TIFFIN_ITEMS, format_currency, load_settings,
)
from stall_metrics import (
    adjust_plates, coerce_price, compute_metrics, initial_sales, metrics_context,
    profit_insights, recommend, render_emphasis,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("stallos")

st.set_page_config(page_title="StallOS | AI Street Food OS", page_icon="🍛", layout="wide")

pio.templates.default = "plotly_white"
px.defaults.template = "plotly_white"

SETTINGS = load_settings()
CUR = SETTINGS.currency_symbol


def fmt(x: float) -> str:
    return format_currency(x, CUR)


def safe_rerun():
    """Rerun the script on any Streamlit version."""
    if hasattr(st, "rerun"):
        st.rerun()
    elif hasattr(st, "experimental_rerun"):
        st.experimental_rerun()


@st.cache_resource
def get_assistant(settings):
    return build_assistant(settings)


def assistant_or_error():
    """(assistant, None) or (None, message) when the provider is not configured."""
    try:
        return get_assistant(SETTINGS), None
    except AssistantError as e:
        return None, str(e)


def transcribe_recording(audio_file) -> str | None:
    assistant, err = assistant_or_error()
    if err:
        st.error(err)
        return None
    try:
        with st.spinner("Listening... 🎙️"):
            return assistant.transcribe(audio_file.getvalue(), filename=audio_file.name or "voice.wav")
    except AssistantError as e:
        st.error(f"Speech recognition error: {e}")
        return None


st.markdown("""
<style>
.stall-card {
    padding: 16px 20px;
    border-radius: 12px;
    margin: 6px 0 14px 0;
}
.stall-reco { background: #f5f3ff; border-left: 4px solid #a78bfa; }
.stall-ai { background: #eff6ff; border-left: 4px solid #3b82f6; white-space: pre-wrap; }
.stall-total { font-size: 1.3rem; font-weight: 800; }
.home-desc { text-align: center; font-size: 0.9rem; color: #555; margin-top: -10px; padding-bottom: 10px; }
div[data-testid="stButton"] > button { font-weight: 600; }
</style>
""", unsafe_allow_html=True)

# ----------------------
# Session state (owned here, passed into the pure engine)
# ----------------------
if "current_page" not in st.session_state:
    st.session_state.current_page = "Home"
if "ingredient_prices" not in st.session_state:
    st.session_state.ingredient_prices = dict(DEFAULT_INGREDIENT_PRICES)
if "plates_sold" not in st.session_state:
    st.session_state.plates_sold = initial_sales(MENU_ITEMS)
if "chat_messages" not in st.session_state:
    st.session_state.chat_messages = [{"role": "assistant", "content": CHAT_GREETING}]
if "strategy_rows" not in st.session_state:
    st.session_state.strategy_rows = [{"tiffin_item": "", "ingredient_price": "", "daily_sales": "", "per_plate_profit": ""}]
if "account" not in st.session_state:
    st.session_state.account = None


def set_page(page_name):
    st.session_state.current_page = page_name


def change_plates(item_id, delta):
    st.session_state.plates_sold = adjust_plates(st.session_state.plates_sold, item_id, delta)


def change_price(ingredient):
    st.session_state.ingredient_prices = {
        **st.session_state.ingredient_prices,
        ingredient: coerce_price(st.session_state[f"price_{ingredient}"]),
    }


# recomputed on every rerun
MENU_DATA, DAILY = compute_metrics(MENU_ITEMS, st.session_state.ingredient_prices, st.session_state.plates_sold)
RECOMMENDATION = recommend(MENU_DATA, SETTINGS.recommendation_config(), currency=CUR)

FEATURES = {
    "AI Sous-Chef": ("👨‍🍳", "Recipe adjustments via AI", "NEW"),
    "Profit Optimizer": ("📈", "Edit prices & sales data", "HOT"),
    "Performance Analytics": ("📊", "View dynamic charts", None),
    "Zero-Waste Genius": ("♻️", "Convert leftovers into profit", None),
    "Chaat-GPT Voice": ("🎙️", "Voice-powered intelligence", "AI"),
    "Daily Sales Strategy": ("🎯", "Market-based recommendations", None),
}
QUICK_ACTIONS = {
    "📅 Today's Ingredients": "AI Sous-Chef",
    "💰 Price Updates": "Profit Optimizer",
    "💡 Recipe Suggestions": "Chaat-GPT Voice",
    "⏱️ Waste Tracker": "Zero-Waste Genius",
}

# ----------------------
# Sidebar
# ----------------------
with st.sidebar:
    st.button("🧠 **StallOS**  \nAI Street Food OS", on_click=set_page, args=("Home",), use_container_width=True)
    account = st.session_state.account
    st.caption(f"👤 {SETTINGS.vendor_name} ⭐ Premium Vendor")
    if account:
        st.caption(f"Signed in as {account}")

    st.subheader("Core Features")
    for name, (icon, desc, badge) in FEATURES.items():
        label = f"{icon} {name}" + (f"  `{badge}`" if badge else "")
        st.button(label, on_click=set_page, args=(name,), help=desc, use_container_width=True,
                  type="primary" if st.session_state.current_page == name else "secondary")

    st.subheader("Quick Actions")
    for label, target in QUICK_ACTIONS.items():
        st.button(label, key=f"quick_{label}", on_click=set_page, args=(target,), use_container_width=True)

    st.divider()
    st.markdown("**Today's Performance**")
    st.caption(f"Profit Margin: **{DAILY.overall_margin:.1f}%**")
    st.caption(f"Total Sales: **{fmt(DAILY.total_revenue)}**")
    st.caption(f"Total Profit: **{fmt(DAILY.total_overall_profit)}**")
    st.divider()
    st.button("⚙️ Account & Settings", on_click=set_page, args=("Account",), use_container_width=True)

menu = st.session_state.current_page

# ==============================================================
# 🏠 Home
# ==============================================================
if menu == "Home":
    st.header("🧠 Welcome to StallOS")
    st.write("The AI-powered operating system for street food vendors. "
             "Transform challenges into opportunities and leftovers into profit.")

    c1, c2, c3 = st.columns(3)
    with c1.container(border=True):
        st.markdown("**👨‍🍳 AI Recipe Adjustments**")
        st.caption("Maintain consistent taste despite ingredient variations.")
    with c2.container(border=True):
        st.markdown("**📈 Smart Profit Optimization**")
        st.caption("Turn market volatility into daily opportunities.")
    with c3.container(border=True):
        st.markdown("**♻️ Zero-Waste Intelligence**")
        st.caption("Convert leftovers into profitable menu items.")

    st.divider()
    keys = list(FEATURES.keys())
    for i in range(0, len(keys), 3):
        cols = st.columns(3)
        for col, key in zip(cols, keys[i:i + 3]):
            icon, desc, _ = FEATURES[key]
            with col.container(border=True):
                st.button(f"{icon} {key}", key=f"home_{key}", on_click=set_page, args=(key,),
                          use_container_width=True)
                st.markdown(f"<div class='home-desc'>{desc}</div>", unsafe_allow_html=True)

# ==============================================================
# 📈 Profit Optimizer
# ==============================================================
elif menu == "Profit Optimizer":
    st.header("📈 Profit Optimizer")

    with st.container(border=True):
        st.subheader(f"Daily Ingredient Prices ({CUR} per kg/L)")
        prices = st.session_state.ingredient_prices
        cols = st.columns(5)
        for idx, ing in enumerate(prices):
            with cols[idx % 5]:
                st.number_input(
                    ing.capitalize(),
                    min_value=0.0,
                    step=0.01,
                    value=float(prices[ing]),
                    key=f"price_{ing}",
                    on_change=change_price,
                    args=(ing,),
                )

    with st.container(border=True):
        st.subheader("Daily Sales Input (Plates Sold)")
        cols = st.columns(3)
        for idx, item in enumerate(MENU_ITEMS):
            with cols[idx % 3]:
                st.markdown(f"**{item.name}**")
                b1, mid, b2 = st.columns([1, 2, 1])
                b1.button("➖", key=f"dec_{item.id}", on_click=change_plates, args=(item.id, -1))
                mid.markdown(f"<div style='text-align:center;font-size:1.2rem;font-weight:600'>"
                             f"{st.session_state.plates_sold.get(item.id, 0)}</div>", unsafe_allow_html=True)
                b2.button("➕", key=f"inc_{item.id}", on_click=change_plates, args=(item.id, 1))

    st.subheader("StallOS AI Recommendation")
    st.markdown(f"<div class='stall-card stall-reco'>{render_emphasis(RECOMMENDATION)}</div>",
                unsafe_allow_html=True)

    st.subheader("Today's Performance Summary")
    t1, t2 = st.columns(2)
    t1.metric("Total Revenue", fmt(DAILY.total_revenue))
    t2.metric("Total Profit", fmt(DAILY.total_overall_profit))

    with st.expander("Per-item breakdown"):
        st.dataframe(
            metrics_frame(MENU_DATA).drop(columns=["id"]),
            column_config={
                "name": st.column_config.TextColumn("Item"),
                "selling_price": st.column_config.NumberColumn(f"Price ({CUR})", format="%.2f"),
                "cost": st.column_config.NumberColumn(f"Cost ({CUR})", format="%.2f"),
                "profit_per_plate": st.column_config.NumberColumn(f"Profit/Plate ({CUR})", format="%.2f"),
                "profit_margin": st.column_config.NumberColumn("Margin (%)", format="%.1f"),
                "plates_sold": st.column_config.NumberColumn("Plates"),
                "item_revenue": st.column_config.NumberColumn(f"Revenue ({CUR})", format="%.2f"),
                "item_profit": st.column_config.NumberColumn(f"Profit ({CUR})", format="%.2f"),
            },
            hide_index=True,
            use_container_width=True,
        )

# ==============================================================
# 📊 Performance Analytics
# ==============================================================
elif menu == "Performance Analytics":
    st.header("📊 Live Performance Analytics")

    m1, m2 = st.columns(2)
    m1.metric("Total Revenue (Today)", fmt(DAILY.total_revenue))
    m2.metric("Total Profit (Today)", fmt(DAILY.total_overall_profit))

    c1, c2 = st.columns(2)
    with c1:
        if any(m.item_profit > 0 for m in MENU_DATA):
            st.plotly_chart(profit_distribution_figure(MENU_DATA, CUR), use_container_width=True)
        else:
            st.info("No profitable sales yet today.")
    with c2:
        st.plotly_chart(sales_vs_margin_figure(MENU_DATA), use_container_width=True)

    st.plotly_chart(cost_breakdown_figure(MENU_DATA, CUR), use_container_width=True)

    with st.expander("🔍 Margin insights"):
        st.text(profit_insights(MENU_DATA, CUR))

# ==============================================================
# 👨‍🍳 AI Sous-Chef
# ==============================================================
elif menu == "AI Sous-Chef":
    st.header("👨‍🍳 AI Sous-Chef")
    st.caption("Real-time Recipe Intelligence")
    st.caption(f"{datetime.now().strftime('%A, %B %d, %Y')} | {SETTINGS.location}")

    with st.container(border=True):
        st.subheader("Aaj ke ingredients kaise hain?")
        st.caption("Describe your ingredients or use the voice button.")

        recording = st.audio_input("Record Voice 🎙️", key="chef_voice")
        if recording is not None and st.session_state.get("chef_voice_id") != recording.file_id:
            st.session_state.chef_voice_id = recording.file_id
            heard = transcribe_recording(recording)
            if heard:
                st.session_state.chef_input = heard

        text = st.text_area(
            "Ingredients",
            key="chef_input",
            placeholder="e.g., 'Aaj ke tamatar thode khatte hain' or 'Chilies are not very spicy'",
            label_visibility="collapsed",
        )
        ask = st.button("Get AI Advice", type="primary", use_container_width=True)

    if ask:
        assistant, err = assistant_or_error()
        if err:
            st.error(err)
        else:
            try:
                with st.spinner("Chaat-GPT is thinking... 🧠"):
                    st.session_state.chef_advice = sous_chef_advice(assistant, text)
            except ValueError as e:
                st.warning(str(e))
            except AssistantError as e:
                st.error(str(e))

    if st.session_state.get("chef_advice"):
        st.markdown("**🧠 Chaat-GPT Suggestion:**")
        st.markdown(st.session_state.chef_advice)

# ==============================================================
# ♻️ Zero-Waste Genius
# ==============================================================
elif menu == "Zero-Waste Genius":
    st.header("♻️ Zero-Waste Genius")
    st.caption("Turn today's leftovers into tomorrow's profits!")

    recording = st.audio_input("Speak your leftovers 🎙️", key="waste_voice")
    if recording is not None and st.session_state.get("waste_voice_id") != recording.file_id:
        st.session_state.waste_voice_id = recording.file_id
        heard = transcribe_recording(recording)
        if heard:
            st.session_state.waste_input = heard

    leftovers = st.text_area("What's left over today?", key="waste_input",
                             placeholder="e.g., 2 cups of cooked rice, half an onion, some coriander")

    if st.button("✨ Generate Recipe", type="primary", use_container_width=True):
        assistant, err = assistant_or_error()
        if err:
            st.error(err)
        else:
            try:
                with st.spinner("Cooking up something special..."):
                    st.session_state.waste_recipe = zero_waste_recipe(assistant, leftovers)
            except ValueError as e:
                st.warning(str(e))
            except AssistantError as e:
                st.error(str(e))

    recipe = st.session_state.get("waste_recipe")
    if recipe:
        with st.container(border=True):
            st.subheader(f"🍲 {recipe['recipe_name']}")
            st.markdown(recipe["instructions"])

# ==============================================================
# 🎙️ Chaat-GPT Voice
# ==============================================================
elif menu == "Chaat-GPT Voice":
    st.header("🎙️ Chaat-GPT Assistant")
    st.caption("Ask about recipes, prices or leftovers. Today's profit numbers are shared with the assistant.")

    if st.button("🔄 New session"):
        st.session_state.chat_messages = [{"role": "assistant", "content": CHAT_GREETING}]
        safe_rerun()

    for message in st.session_state.chat_messages:
        with st.chat_message(message["role"]):
            st.markdown(message["content"])

    prompt = None
    recording = st.audio_input("Talk to Chaat-GPT", key="chat_voice")
    if recording is not None and st.session_state.get("chat_voice_id") != recording.file_id:
        st.session_state.chat_voice_id = recording.file_id
        prompt = transcribe_recording(recording)
    if typed := st.chat_input("e.g., 'Aaj ke tamatar thode khatte hain.'"):
        prompt = typed

    if prompt:
        st.session_state.chat_messages.append({"role": "user", "content": prompt})
        with st.chat_message("user"):
            st.markdown(prompt)

        with st.chat_message("assistant"):
            assistant, err = assistant_or_error()
            if err:
                st.error(err)
            else:
                context = (metrics_context(MENU_DATA, DAILY, CUR)
                           + "\n\n" + profit_insights(MENU_DATA, CUR)
                           + "\n\nRule-based recommendation: " + RECOMMENDATION)
                try:
                    with st.spinner("Chaat-GPT is thinking... 🧠"):
                        reply = chat_reply(assistant, st.session_state.chat_messages, context)
                    st.markdown(reply)
                    st.session_state.chat_messages.append({"role": "assistant", "content": reply})
                except AssistantError as e:
                    st.error(str(e))

# ==============================================================
# 🎯 Daily Sales Strategy
# ==============================================================
elif menu == "Daily Sales Strategy":
    st.header("🎯 Daily Sales Strategy")
    st.caption("Note: entries live only in this session and are cleared on refresh.")

    rows = st.session_state.strategy_rows
    options = ["Select an item"] + TIFFIN_ITEMS
    remove_idx = None
    for idx, row in enumerate(rows):
        with st.container(border=True):
            h1, h2 = st.columns([0.8, 0.2])
            h1.markdown(f"**Tiffin Item #{idx + 1}**")
            if len(rows) > 1 and h2.button("Remove", key=f"strategy_remove_{idx}"):
                remove_idx = idx
            c1, c2, c3, c4 = st.columns(4)
            current = row["tiffin_item"] if row["tiffin_item"] in TIFFIN_ITEMS else "Select an item"
            row["tiffin_item"] = c1.selectbox("Tiffin Item", options, index=options.index(current),
                                              key=f"strategy_item_{idx}")
            row["ingredient_price"] = c2.text_input(f"Ingredient Price ({CUR})", value=row["ingredient_price"],
                                                    key=f"strategy_price_{idx}", placeholder="e.g., 5000")
            row["daily_sales"] = c3.text_input("Daily Sales (Plates)", value=row["daily_sales"],
                                               key=f"strategy_sales_{idx}", placeholder="e.g., 120")
            row["per_plate_profit"] = c4.text_input(f"Per Plate Profit ({CUR})", value=row["per_plate_profit"],
                                                    key=f"strategy_profit_{idx}", placeholder="e.g., 15")

    if remove_idx is not None:
        rows.pop(remove_idx)
        for k in [k for k in st.session_state if str(k).startswith("strategy_") and k != "strategy_rows"]:
            del st.session_state[k]
        safe_rerun()

    b1, b2 = st.columns(2)
    if b1.button("➕ Add Tiffin Item", use_container_width=True):
        rows.append({"tiffin_item": "", "ingredient_price": "", "daily_sales": "", "per_plate_profit": ""})
        safe_rerun()
    if b2.button("Get Strategy", type="primary", use_container_width=True):
        assistant, err = assistant_or_error()
        if err:
            st.error(err)
        else:
            try:
                with st.spinner("Generating strategy..."):
                    st.session_state.strategy_result = daily_strategy(assistant, rows)
            except ValueError as e:
                st.warning(str(e))
            except AssistantError as e:
                st.error(f"An error occurred: {e}")

    st.subheader("AI Recommendation")
    st.markdown(st.session_state.get(
        "strategy_result",
        'Enter data for your tiffin items and click "Get Strategy" to receive a daily sales strategy.',
    ))

# ==============================================================
# ⚙️ Account
# ==============================================================
elif menu == "Account":
    st.header("⚙️ Account")
    if st.session_state.account:
        st.success(f"Signed in as {st.session_state.account}")
        if st.button("Sign out"):
            st.session_state.account = None
            safe_rerun()
    else:
        tab_in, tab_up = st.tabs(["Sign in", "Create account"])
        with tab_in:
            with st.form("sign_in"):
                email = st.text_input("Email")
                password = st.text_input("Password", type="password")
                st.checkbox("Remember me", value=True)
                submitted = st.form_submit_button("Sign in", type="primary")
            if submitted:
                errors = validate_sign_in(email, password)
                for msg in errors.values():
                    st.error(msg)
                if not errors:
                    st.session_state.account = email
                    logger.info("session sign-in")
                    safe_rerun()
        with tab_up:
            with st.form("sign_up"):
                email = st.text_input("Email", key="signup_email")
                password = st.text_input("Password", type="password", key="signup_password")
                confirm = st.text_input("Confirm password", type="password", key="signup_confirm")
                submitted = st.form_submit_button("Create account", type="primary")
            if password:
                st.caption(f"Password strength: **{password_strength(password)}**")
            if submitted:
                errors = validate_sign_up(email, password, confirm)
                for msg in errors.values():
                    st.error(msg)
                if not errors:
                    st.session_state.account = email
                    st.success("Account created for this session.")
                    safe_rerun()

    st.divider()
    st.subheader("Settings")
    st.caption(f"AI provider: **{SETTINGS.ai_provider}**")
    st.caption(f"Recommendation thresholds: margin gap {SETTINGS.margin_gap:g} pts, "
               f"top margin floor {SETTINGS.min_top_margin:g}%, shift {SETTINGS.shift_plates} plates")
    _, err = assistant_or_error()
    if err:
        st.warning(err)
