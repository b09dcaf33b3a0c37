import sys
import os
import streamlit as st

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.domain import ActiveFilters, CheckoutStep, Product
from storefront.errors import EmptyCartError, OperationCancelled
from storefront.filters import SORT_OPTIONS, featured_products
from storefront.logger import get_logger
from storefront.service import Storefront, run
from storefront.tasks import CancelToken

logger = get_logger(__name__)

CATEGORY_TITLES = {
    "all": "Все товары",
    "men": "Мужская мода",
    "women": "Женская мода",
    "kids": "Детская мода",
    "home-living": "Дом и интерьер",
    "beauty": "Красота и уход",
}


# ============ Инициализация ============
st.set_page_config(
    page_title="StyleHub",
    page_icon="🛍️",
    layout="wide",
    initial_sidebar_state="expanded",
)


def start_session():
    """Сторы создаются один раз на сессию и гидрируются из хранилища"""
    shop = Storefront()
    token = CancelToken()
    st.session_state.shop = shop
    st.session_state.load_token = token
    st.session_state.checkout = None
    st.session_state.filters = ActiveFilters()
    try:
        result = run(shop.start(token))
        st.session_state.load_error = result.error_or_none()
    except OperationCancelled:
        st.session_state.load_error = None


if "shop" not in st.session_state:
    start_session()

shop: Storefront = st.session_state.shop


# ============ Вспомогательные функции ============
def format_price(value: float) -> str:
    return f"₹{value:,.0f}"


def price_block(p: Product) -> str:
    if p.has_discount:
        return (
            f"**{format_price(p.discounted_price)}** ~~{format_price(p.price)}~~ "
            f"· {p.discount_percent}% OFF"
        )
    return f"**{format_price(p.price)}**"


def add_to_cart(p: Product, size: str, color: str, qty: int):
    result = run(shop.cart.add_to_cart(p.id, qty, size, color, p.effective_price))
    if result.is_right:
        st.success(f"✅ {p.name} × {qty} в корзине")
    else:
        st.error("❌ Не удалось добавить товар в корзину")


def wishlist_button(p: Product, key: str):
    in_list = shop.wishlist.is_in_wishlist(p.id)
    if st.button("💔 Убрать" if in_list else "❤️ В избранное", key=key):
        shop.wishlist.toggle(p)
        st.rerun()


def product_row(p: Product, prefix: str):
    with st.container():
        cols = st.columns([4, 2, 2, 2, 1, 2])
        with cols[0]:
            st.markdown(f"**{p.name}**")
            st.caption(f"{p.brand} · {p.category}")
            if not p.in_stock:
                st.caption("⛔ Нет в наличии")
        with cols[1]:
            st.markdown(price_block(p))
        with cols[2]:
            size = st.selectbox(
                "Размер", p.sizes or ("",), key=f"{prefix}_size_{p.id}",
                label_visibility="collapsed",
            )
        with cols[3]:
            color = st.selectbox(
                "Цвет", p.colors or ("",), key=f"{prefix}_color_{p.id}",
                label_visibility="collapsed",
            )
        with cols[4]:
            qty = st.number_input(
                "Кол-во", min_value=1, value=1, key=f"{prefix}_qty_{p.id}",
                label_visibility="collapsed",
            )
        with cols[5]:
            if st.button(
                "➕ В корзину", key=f"{prefix}_add_{p.id}", disabled=not p.in_stock
            ):
                add_to_cart(p, size, color, int(qty))
            wishlist_button(p, key=f"{prefix}_wish_{p.id}")
        st.divider()


def filter_sidebar() -> ActiveFilters:
    """Боковая панель фильтров -> ActiveFilters"""
    options = shop.catalog.filter_options
    if options is None:
        return ActiveFilters()

    st.subheader("🎛️ Фильтры")
    if st.button("Сбросить всё", key="clear_filters"):
        for key in ("categories", "brands", "sizes", "colors", "discounts"):
            st.session_state[f"f_{key}"] = []
        st.session_state.f_min = 0
        st.session_state.f_max = 0

    selected = {
        key: st.multiselect(title, getattr(options, key), key=f"f_{key}")
        for key, title in (
            ("categories", "Категории"),
            ("brands", "Бренды"),
            ("sizes", "Размеры"),
            ("colors", "Цвета"),
            ("discounts", "Скидки"),
        )
    }
    min_price = st.number_input("Мин. цена (₹)", min_value=0, step=100, key="f_min")
    max_price = st.number_input("Макс. цена (₹)", min_value=0, step=100, key="f_max")
    # 0 в поле ввода - граница не задана
    return ActiveFilters.from_mapping(selected).with_price_range(
        min_price or None, max_price or None
    )


# ============ HEADER ============
st.title("🛍️ StyleHub")
st.caption(
    f"🛒 В корзине: {shop.cart.get_cart_count()} · ❤️ В избранном: {shop.wishlist.count}"
)

if st.session_state.load_error is not None:
    st.error(f"❌ {st.session_state.load_error.message}")
    if st.button("🔄 Повторить", key="retry_load"):
        result = run(shop.catalog.load())
        st.session_state.load_error = result.error_or_none()
        st.rerun()

# ============ SIDEBAR - Навигация ============
with st.sidebar:
    st.header("📂 Навигация")
    page = st.radio(
        "Выберите раздел:",
        [
            "🏠 Главная",
            "🏪 Каталог",
            "🔍 Поиск",
            "🛒 Корзина",
            "❤️ Избранное",
            "💳 Оформление",
        ],
        label_visibility="collapsed",
    )
    st.divider()
    if page == "🏪 Каталог":
        active_filters = filter_sidebar()


# ============ PAGE: ГЛАВНАЯ ============
if page == "🏠 Главная":
    st.header("✨ Популярное")
    for p in featured_products(shop.catalog.store.products):
        product_row(p, "home")


# ============ PAGE: КАТАЛОГ ============
elif page == "🏪 Каталог":
    col1, col2 = st.columns(2)
    with col1:
        slug = st.selectbox(
            "📂 Раздел",
            list(CATEGORY_TITLES),
            format_func=CATEGORY_TITLES.get,
            key="catalog_slug",
        )
    with col2:
        sort_key = st.selectbox(
            "↕️ Сортировка",
            [key for key, _ in SORT_OPTIONS],
            format_func=dict(SORT_OPTIONS).get,
            key="catalog_sort",
        )

    listed = shop.catalog.browse(slug, active_filters, sort_key)
    chips = active_filters.chips()
    if chips:
        st.caption("Активные фильтры: " + ", ".join(v for _, v in chips))
    st.info(f"🔍 Найдено товаров: **{len(listed)}**")
    st.divider()

    if not listed:
        st.warning("Товары не найдены. Попробуйте изменить фильтры.")
    for p in listed:
        product_row(p, "catalog")

    st.subheader("💡 Похожие товары")
    if listed and st.button("Показать рекомендации", key="recs_btn"):
        for rec in run(shop.catalog.recommendations(listed[0])):
            st.write(f"• **{rec.name}** — {format_price(rec.effective_price)}")


# ============ PAGE: ПОИСК ============
elif page == "🔍 Поиск":
    st.header("🔍 Поиск")
    query = st.text_input("Что вы ищете?", key="search_query")
    if query.strip():
        results = shop.catalog.search(query)
        st.caption(f"{len(results)} результатов по запросу «{query}»")
        for p in results:
            product_row(p, "search")
    else:
        st.caption("Например: Shirts, Dresses, Shoes, Accessories")


# ============ PAGE: КОРЗИНА ============
elif page == "🛒 Корзина":
    st.header("🛒 Ваша корзина")

    if shop.cart.is_empty:
        st.info("🛍️ Корзина пуста. Перейдите в каталог!")
    else:
        for item in shop.cart.items:
            title = item.product.name if item.product else f"Товар #{item.product_id}"
            cols = st.columns([5, 2, 2, 2, 1])
            with cols[0]:
                st.write(f"**{title}**")
                st.caption(f"{item.size} · {item.color}")
            with cols[1]:
                qty = st.number_input(
                    "Кол-во",
                    min_value=0,
                    value=item.quantity,
                    key=f"cart_qty_{item.product_id}_{item.size}_{item.color}",
                    label_visibility="collapsed",
                )
                if qty != item.quantity:
                    shop.cart.update_quantity(item.product_id, int(qty))
                    st.rerun()
            with cols[2]:
                st.write(format_price(item.price))
            with cols[3]:
                st.write(format_price(item.line_total))
            with cols[4]:
                if st.button(
                    "🗑️", key=f"remove_{item.product_id}_{item.size}_{item.color}"
                ):
                    shop.cart.remove_from_cart(item.product_id)
                    st.toast("Товар удалён из корзины")
                    st.rerun()

        summary = shop.cart.summary()
        st.divider()
        st.write(f"Товаров: {summary['count']}")
        st.write(f"Подытог: {format_price(summary['subtotal'])}")
        st.write(
            "Доставка: "
            + ("БЕСПЛАТНО" if summary["shipping_fee"] == 0 else format_price(summary["shipping_fee"]))
        )
        if summary["savings"]:
            st.write(f"Экономия: {format_price(summary['savings'])}")
        st.markdown(f"### 💰 Итого: **{format_price(summary['total'])}**")


# ============ PAGE: ИЗБРАННОЕ ============
elif page == "❤️ Избранное":
    st.header("❤️ Избранное")
    if not shop.wishlist.items:
        st.info("Список пуст. Добавляйте товары кнопкой ❤️")
    else:
        if st.button("Очистить избранное", key="wish_clear"):
            shop.wishlist.clear_wishlist()
            st.rerun()
        for p in shop.wishlist.items:
            cols = st.columns([5, 3, 2, 2])
            with cols[0]:
                st.markdown(f"**{p.name}**")
                st.caption(p.brand)
            with cols[1]:
                st.markdown(price_block(p))
            with cols[2]:
                if st.button("🛒 В корзину", key=f"wish_move_{p.id}", disabled=not p.in_stock):
                    result = run(shop.wishlist.move_to_cart(p.id, shop.cart))
                    if result.is_left:
                        st.error(f"❌ {result.value.message}")
                    st.rerun()
            with cols[3]:
                if st.button("🗑️", key=f"wish_remove_{p.id}"):
                    shop.wishlist.remove_from_wishlist(p.id)
                    st.rerun()


# ============ PAGE: ОФОРМЛЕНИЕ ============
elif page == "💳 Оформление":
    st.header("💳 Оформление заказа")

    checkout = st.session_state.checkout
    if checkout is not None and checkout.placed:
        st.success(f"🎉 Заказ {checkout.confirmation.id[:8]} оформлен!")
        st.write(f"Сумма: {format_price(checkout.confirmation.total)}")
        if st.button("Продолжить покупки", key="checkout_done"):
            st.session_state.checkout = None
            st.rerun()
        st.stop()

    if checkout is None:
        try:
            checkout = shop.begin_checkout()
        except EmptyCartError:
            st.info("🛍️ Корзина пуста. Добавьте товары перед оформлением.")
            st.stop()
        st.session_state.checkout = checkout
    elif shop.cart.is_empty:
        st.session_state.checkout = None
        st.info("🛍️ Корзина пуста. Добавьте товары перед оформлением.")
        st.stop()

    st.progress(checkout.step / CheckoutStep.REVIEW, text=f"Шаг {int(checkout.step)} из 3")
    form = checkout.form

    if checkout.step == CheckoutStep.SHIPPING:
        st.subheader("🚚 Доставка")
        col1, col2 = st.columns(2)
        with col1:
            first_name = st.text_input("Имя", form.first_name)
            email = st.text_input("Email", form.email)
            address = st.text_input("Адрес", form.address)
            state = st.text_input("Штат", form.state)
        with col2:
            last_name = st.text_input("Фамилия", form.last_name)
            phone = st.text_input("Телефон", form.phone)
            city = st.text_input("Город", form.city)
            pincode = st.text_input("Пинкод", form.pincode)
        checkout.update(
            first_name=first_name, last_name=last_name, email=email, phone=phone,
            address=address, city=city, state=state, pincode=pincode,
        )

    elif checkout.step == CheckoutStep.PAYMENT:
        st.subheader("💳 Оплата")
        cardholder_name = st.text_input("Имя держателя карты", form.cardholder_name)
        card_number = st.text_input("Номер карты", form.card_number, max_chars=19)
        col1, col2, col3 = st.columns(3)
        with col1:
            expiry_month = st.text_input("Месяц (MM)", form.expiry_month, max_chars=2)
        with col2:
            expiry_year = st.text_input("Год (YYYY)", form.expiry_year, max_chars=4)
        with col3:
            cvv = st.text_input("CVV", form.cvv, max_chars=4, type="password")
        checkout.update(
            cardholder_name=cardholder_name, card_number=card_number,
            expiry_month=expiry_month, expiry_year=expiry_year, cvv=cvv,
        )

    else:
        st.subheader("✅ Проверка заказа")
        st.write(f"{form.first_name} {form.last_name}")
        st.write(f"{form.address}, {form.city}, {form.state} {form.pincode}")
        st.write(f"Карта: **** **** **** {form.card_number.replace(' ', '')[-4:]}")
        for item in checkout.cart.items:
            name = item.product.name if item.product else f"#{item.product_id}"
            st.write(f"• {name} ({item.size}, {item.color}) × {item.quantity}")

    summary = checkout.summary()
    st.divider()
    st.markdown(f"### 💰 К оплате: **{format_price(summary['total'])}**")

    col1, col2 = st.columns(2)
    with col1:
        if checkout.step > CheckoutStep.SHIPPING and st.button("← Назад", key="checkout_prev"):
            checkout.previous_step()
            st.rerun()
    with col2:
        if checkout.step < CheckoutStep.REVIEW:
            if st.button("Далее →", type="primary", key="checkout_next"):
                result = checkout.next_step()
                if result.is_left:
                    st.error(f"❌ {result.value.message}")
                else:
                    st.rerun()
        elif st.button("✅ Оформить заказ", type="primary", key="checkout_place"):
            with st.spinner("⏳ Обработка платежа..."):
                result = run(checkout.place_order())
            if result.is_left:
                st.error(f"❌ {result.value.message}")
            else:
                st.balloons()
                st.rerun()
