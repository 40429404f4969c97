"""Пример использования WMS шлюза."""

import asyncio
import logging

from wmsgateway import WmsApiClientManager, get_wms_gateway_config

# Настраиваем логирование
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


async def main() -> None:
    """Основная функция."""
    # Загружаем конфигурацию из config.yml
    config = get_wms_gateway_config()
    print(f"Подключение к бэкенду: {config.backend_url} ({config.security_model.value})")

    # Создаём менеджер API
    manager = await WmsApiClientManager.from_config(config)

    try:
        dashboard = await manager.fetch_dashboard_all()
        print(f"\nДашборд загружен за {dashboard.total_load_time} мс")
        print(f"  Товаров: {dashboard.summary.total_items}")
        print(f"  Остаток всего: {dashboard.summary.total_inventory}")
        print(f"  Приходов в ожидании: {dashboard.summary.inbound_pending}")
        print(f"  Расходов в ожидании: {dashboard.summary.outbound_pending}")

        for schedule in dashboard.schedules[:5]:  # Показываем первые 5
            print(f"  - {schedule.title} ({schedule.start_time})")

    finally:
        # Закрываем все соединения
        await WmsApiClientManager.close_all()
        print("\nСоединения закрыты.")


if __name__ == "__main__":
    asyncio.run(main())
