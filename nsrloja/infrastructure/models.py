# Modelos de autenticação e endereços de entrega do usuário.

import uuid
from django.db import models
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.conf import settings

# ====================================================================
# GERENCIADOR DE USUÁRIOS PERSONALIZADO (Para usar email como login)
# ====================================================================

class CustomUserManager(BaseUserManager):
    """
    Gerenciador de modelos de usuário onde o email é o identificador único
    para autenticação, em vez dos nomes de usuário.
    """
    use_in_migrations = True

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('O e-mail deve ser definido')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superusuário precisa ter is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superusuário precisa ter is_superuser=True.')

        return self.create_user(email, password, **extra_fields)


# ====================================================================
# MODELO DE USUÁRIO
# ====================================================================

class Usuario(AbstractUser):
    """
    Cliente da loja. Login pelo e-mail; CPF e telefone são usados como
    dados do comprador nas cobranças do PagBank.
    """
    username = None

    email = models.EmailField('Endereço de E-mail', unique=True)
    telefone = models.CharField(max_length=15, blank=True, null=True)
    cpf = models.CharField('CPF', max_length=14, unique=True, blank=True, null=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    objects = CustomUserManager()

    class Meta:
        verbose_name = 'Usuário'
        verbose_name_plural = 'Usuários'
        db_table = 'infra_usuario'

    def __str__(self):
        return self.email

    @property
    def nome_completo(self):
        return self.get_full_name() or self.email


class Endereco(models.Model):
    """
    Endereço de entrega do usuário. Cada usuário tem exatamente um endereço
    principal; a troca é feita pelo repositório dentro de uma transação.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    usuario = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='enderecos')
    apelido = models.CharField(max_length=50, help_text="Ex: Casa, Trabalho")
    nome_destinatario = models.CharField(max_length=100, verbose_name="Destinatário")
    telefone_destinatario = models.CharField(max_length=15, blank=True, verbose_name="Telefone do Destinatário")
    cep = models.CharField(max_length=8, verbose_name="CEP")
    rua = models.CharField(max_length=200, verbose_name="Rua")
    numero = models.CharField(max_length=10, verbose_name="Número")
    complemento = models.CharField(max_length=100, blank=True, null=True, verbose_name="Complemento")
    bairro = models.CharField(max_length=100, verbose_name="Bairro")
    cidade = models.CharField(max_length=100, verbose_name="Cidade")
    estado = models.CharField(max_length=2, verbose_name="UF")
    is_principal = models.BooleanField(default=False, verbose_name="Endereço Principal")
    data_criacao = models.DateTimeField(auto_now_add=True)
    data_atualizacao = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Endereço do Usuário'
        verbose_name_plural = 'Endereços do Usuário'
        db_table = 'usuario_endereco'
        ordering = ['-is_principal', '-data_criacao']

    def __str__(self):
        return f"{self.usuario} - {self.apelido}"

    def formatar_endereco_texto(self):
        """Retorna o endereço completo como string."""
        complemento_str = f", {self.complemento}" if self.complemento else ""
        return f"{self.rua}, {self.numero}{complemento_str} - {self.bairro} - {self.cidade}/{self.estado} - CEP: {self.cep}"
