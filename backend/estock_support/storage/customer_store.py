"""
Customer Store - Registered pharmacies, persisted through StorageInterface.
Each customer is a JSON file in customers/, with a contract-number index.
"""

import json
import logging
from typing import Dict, List, Optional, Tuple

from ..models import Customer, now_ms
from .interface import StorageInterface

logger = logging.getLogger(__name__)

DUPLICATE_CONTRACT_MESSAGE = "رقم التعاقد مسجل بالفعل"
MISSING_FIELDS_MESSAGE = "يرجى إدخال الاسم ورقم التعاقد"


class CustomerStore:
    """
    Manages persistent storage of customer accounts.
    Uses one JSON file per customer stored in data/customers/.
    """

    def __init__(self, storage: StorageInterface):
        """
        Initialize customer storage.

        Args:
            storage: StorageInterface implementation (typically LocalStorage)
        """
        self.storage = storage
        self.customers_dir = "customers"
        self._contract_index_path = f"{self.customers_dir}/contract_index.json"

    async def _load_contract_index(self) -> Dict[str, str]:
        """Load contract number to customer id mapping."""
        content = await self.storage.load(self._contract_index_path)
        if content is None:
            return {}
        try:
            return json.loads(content.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Contract index unreadable, rebuilding from customer files")
            return {c.contract_number: c.id for c in await self.list_customers()}

    async def _save_contract_index(self, index: Dict[str, str]) -> bool:
        content = json.dumps(index, indent=2, ensure_ascii=False)
        return await self.storage.save(self._contract_index_path, content)

    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        """
        Get customer by id.

        Args:
            customer_id: Customer ID

        Returns:
            Optional[Customer]: Customer or None if not found
        """
        content = await self.storage.load(f"{self.customers_dir}/{customer_id}.json")
        if content is None:
            return None

        try:
            return Customer.model_validate_json(content)
        except ValueError as e:
            logger.error(f"Error loading customer {customer_id}: {e}")
            return None

    async def get_by_contract(self, contract_number: str) -> Optional[Customer]:
        index = await self._load_contract_index()
        customer_id = index.get(contract_number.strip())
        if customer_id is None:
            return None
        return await self.get_customer(customer_id)

    async def save_customer(self, customer: Customer) -> Customer:
        """
        Create or replace a customer record and keep the index in sync.

        Args:
            customer: Customer to persist

        Returns:
            Customer: The saved customer
        """
        previous = await self.get_customer(customer.id)

        path = f"{self.customers_dir}/{customer.id}.json"
        await self.storage.save(path, customer.model_dump_json(by_alias=True, indent=2))

        index = await self._load_contract_index()
        if previous is not None and previous.contract_number != customer.contract_number:
            index.pop(previous.contract_number, None)
        index[customer.contract_number] = customer.id
        await self._save_contract_index(index)

        return customer

    async def delete_customer(self, customer_id: str) -> bool:
        """
        Delete a customer.

        Returns:
            bool: True if deleted successfully
        """
        customer = await self.get_customer(customer_id)
        if customer is None:
            return False

        index = await self._load_contract_index()
        if index.get(customer.contract_number) == customer_id:
            del index[customer.contract_number]
            await self._save_contract_index(index)

        return await self.storage.delete(f"{self.customers_dir}/{customer_id}.json")

    async def list_customers(self) -> List[Customer]:
        """
        List all customers, ordered by name.
        """
        files = await self.storage.list(self.customers_dir, pattern="*.json")
        customers = []

        for file_path in files:
            if file_path.endswith('contract_index.json'):
                continue

            content = await self.storage.load(file_path)
            if not content:
                continue
            try:
                customers.append(Customer.model_validate_json(content))
            except ValueError as e:
                logger.warning(f"Skipping invalid customer file {file_path}: {e}")

        customers.sort(key=lambda c: c.name)
        return customers

    async def register(self, name: str, contract_number: str) -> Tuple[Optional[Customer], Optional[str]]:
        """
        Register a new customer.

        Returns:
            (customer, None) on success, (None, error message) otherwise
        """
        name = (name or "").strip()
        contract_number = (contract_number or "").strip()

        if not name or not contract_number:
            return None, MISSING_FIELDS_MESSAGE
        if await self.get_by_contract(contract_number) is not None:
            return None, DUPLICATE_CONTRACT_MESSAGE

        customer = Customer(id=str(now_ms()), name=name, contract_number=contract_number)
        await self.save_customer(customer)
        logger.info(
            "Customer registered",
            extra={"extra_fields": {"customer_id": customer.id}},
        )
        return customer, None

    async def authenticate(self, name: str, contract_number: str) -> Optional[Customer]:
        """
        Authenticate a customer by name and contract number.
        Only active customers may log in; success updates lastLogin.
        """
        customer = await self.get_by_contract(contract_number or "")
        if customer is None or not customer.is_active:
            return None
        if customer.name.strip() != (name or "").strip():
            return None

        customer.last_login = now_ms()
        await self.save_customer(customer)
        return customer

    async def bulk_add(self, customers: List[Customer]) -> int:
        """
        Add customers whose contract numbers are not registered yet.

        Returns:
            int: Number of customers added
        """
        index = await self._load_contract_index()
        added = 0
        for customer in customers:
            if customer.contract_number in index:
                continue
            await self.save_customer(customer)
            index[customer.contract_number] = customer.id
            added += 1
        return added
